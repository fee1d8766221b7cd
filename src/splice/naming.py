from __future__ import annotations

from typing import Callable


def branch_name_base(prefix: str, pr_number: int, batch_id: str) -> str:
    return f"{prefix.rstrip('/')}/pr-{pr_number}-{batch_id}"


def default_title(batch_id: str, pr_number: int) -> str:
    return f"[Splice] {batch_id} from PR #{pr_number}"


def next_available_name(base: str, exists: Callable[[str], bool]) -> str:
    """Return ``base``, or the first ``base-N`` (N >= 2) that ``exists`` rejects."""
    name = base
    suffix = 2
    while exists(name):
        name = f"{base}-{suffix}"
        suffix += 1
    return name
