from __future__ import annotations

from typing import Iterable, Optional, Sequence

from splice.diff_model import DiffLine, LineKind, Side


def _primary_indexes(lines: Sequence[DiffLine], side: Side, start: int, end: int) -> set[int]:
    selected: set[int] = set()
    for line in lines:
        coordinate = line.coordinate(side)
        if coordinate is not None and start <= coordinate <= end:
            selected.add(line.index)
    return selected


def adjacent_deletions(lines: Sequence[DiffLine], selected: Iterable[int]) -> set[int]:
    """Return indexes of deletions that must travel with the selected lines.

    A deletion is pulled in when its old coordinate falls inside the old span
    bounded by the selected lines, or when it belongs to the run of deletions
    directly in front of a selected addition. The input set is not modified.
    """
    chosen = set(selected)
    by_index = {line.index: line for line in lines}

    old_numbers = [
        by_index[i].old_line for i in chosen if i in by_index and by_index[i].old_line is not None
    ]
    pulled: set[int] = set()

    if old_numbers:
        low, high = min(old_numbers), max(old_numbers)
        for line in lines:
            if line.kind is LineKind.DELETION and line.index not in chosen and low <= line.old_line <= high:
                pulled.add(line.index)

    for position, line in enumerate(lines):
        if line.kind is not LineKind.ADDITION or line.index not in chosen:
            continue
        cursor = position - 1
        while cursor >= 0 and lines[cursor].kind is LineKind.DELETION:
            if lines[cursor].hunk_index != line.hunk_index:
                break
            if lines[cursor].index not in chosen:
                pulled.add(lines[cursor].index)
            cursor -= 1

    return pulled


def select_range(
    lines: Sequence[DiffLine],
    side: Side,
    start: int,
    end: int,
) -> Optional[list[DiffLine]]:
    """Filter a diff model down to the lines covering ``[start, end]`` on ``side``.

    Returns None when nothing in the diff falls inside the range.
    """
    if start > end:
        start, end = end, start

    primary = _primary_indexes(lines, side, start, end)
    if not primary:
        return None

    chosen = primary | adjacent_deletions(lines, primary)
    return [line for line in lines if line.index in chosen]
