from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from shared.github_client import GitHubClient
from shared.logging import get_logger
from splice.hunks import ExtractedChange
from splice.merge import reconcile_hunks
from splice.patch_apply import PatchApplyError, apply_hunks_to_text

logger = get_logger("splice_commit")


class SpliceError(RuntimeError):
    pass


@dataclass
class FileUpdate:
    path: str
    content: str
    is_new: bool = False


def build_file_updates(
    gh: GitHubClient,
    owner: str,
    repo: str,
    changes: list[ExtractedChange],
    base_ref: str,
    local_logger: Optional[Any] = None,
) -> tuple[list[FileUpdate], list[str]]:
    """Rebuild each changed file on top of ``base_ref``.

    Returns the updates plus the paths whose hunks could not be applied; a
    failing file does not stop the others.
    """
    log = local_logger or logger
    updates: list[FileUpdate] = []
    failed: list[str] = []

    for change in changes:
        base_text = gh.get_file_text(owner, repo, change.path, base_ref)
        try:
            hunks = reconcile_hunks(change.hunks)
            content = apply_hunks_to_text(base_text, hunks)
        except PatchApplyError as exc:
            log.warning("hunk_apply_failed", extra={"extra": {"path": change.path, "error": str(exc)}})
            failed.append(change.path)
            continue

        updates.append(FileUpdate(path=change.path, content=content, is_new=base_text is None))

    return updates, failed


def commit_changes(
    gh: GitHubClient,
    owner: str,
    repo: str,
    branch_name: str,
    base_ref: str,
    updates: list[FileUpdate],
    message: str,
    original_pr_number: int,
    author_name: str,
    author_email: str,
) -> str:
    """Create one commit holding every update on top of ``base_ref`` and point the branch at it."""
    if not updates:
        raise SpliceError("No file changes to commit")

    base_sha = gh.get_branch_sha(owner, repo, base_ref)
    base_tree = ((gh.get_commit(owner, repo, base_sha).get("tree") or {}).get("sha"))
    if not base_tree:
        raise SpliceError(f"Could not resolve tree for {base_ref}")

    entries = []
    for update in updates:
        blob_sha = gh.create_blob(owner, repo, update.content)
        entries.append({"path": update.path, "mode": "100644", "type": "blob", "sha": blob_sha})

    tree_sha = gh.create_tree(owner, repo, base_tree, entries)
    commit_sha = gh.create_commit(
        owner,
        repo,
        message=f"{message}\n\nSpliced from PR #{original_pr_number}",
        tree=tree_sha,
        parents=[base_sha],
        author={"name": author_name, "email": author_email},
    )
    gh.update_ref(owner, repo, f"heads/{branch_name}", commit_sha)
    return commit_sha
