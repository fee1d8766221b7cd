from __future__ import annotations

from typing import Optional

from shared.schema import SpliceMetadata

_FOOTER = "*Created by [Splice Bot](https://github.com/jcommelin/splice-pr)*"


def generate_batch_description(
    original_pr_number: int,
    original_pr_title: str,
    batch_id: str,
    file_paths: list[str],
    comment_id: int,
    author_login: str,
    custom_description: Optional[str] = None,
) -> str:
    """Body for a spliced PR.

    Single-comment splices use a synthetic ``c<comment id>`` batch id, so the
    layout is the same for one file or many. The trailing HTML comment is what
    the merge callback reads to find the original PR.
    """
    parts = [
        f"Spliced from #{original_pr_number} ({original_pr_title})",
        "",
        f"**Batch ID**: `{batch_id}`",
        "**Files**:",
        "\n".join(f"- `{path}`" for path in file_paths),
        "",
        f"**Requested by**: @{author_login}",
    ]

    if custom_description:
        parts.extend(["", custom_description])

    metadata = SpliceMetadata(original_pr=original_pr_number, comment_id=comment_id)
    parts.extend(["", "---", _FOOTER, metadata.render()])
    return "\n".join(parts)
