"""Single-file extraction entry points.

These are the operations the worker calls with the ``patch`` text GitHub
returns for one file of a pull request. Nothing here raises for a selection
that misses the diff; callers get None (or an empty list) instead.
"""

from __future__ import annotations

from typing import Optional

from splice.diff_model import Side, group_hunks, parse_diff
from splice.hunks import ExtractedChange, Hunk, synthesize_hunk
from splice.range_selector import select_range


def extract_range(
    path: str,
    patch: str,
    side: Side,
    range_start: int,
    range_end: int,
) -> Optional[ExtractedChange]:
    selected = select_range(parse_diff(patch), side, range_start, range_end)
    if selected is None:
        return None
    return ExtractedChange(path=path, hunks=[synthesize_hunk(selected)])


def extract_entire_hunk(patch: str, new_line: int) -> Optional[Hunk]:
    """Return the whole hunk, context included, around a new-side line number."""
    for group in group_hunks(parse_diff(patch)):
        if any(line.new_line == new_line for line in group):
            return synthesize_hunk(group)
    return None


def extract_all_hunks(patch: str) -> list[Hunk]:
    return [synthesize_hunk(group) for group in group_hunks(parse_diff(patch))]
