from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from shared.logging import get_logger
from splice.diff_model import DiffLine, Side, parse_diff
from splice.hunks import ExtractedChange, Hunk, synthesize_hunk
from splice.range_selector import select_range

logger = get_logger("splice_merge")


@dataclass(frozen=True)
class Selection:
    file_path: str
    side: Side
    range_start: int
    range_end: int

    def __post_init__(self) -> None:
        if self.range_start < 1 or self.range_end < 1:
            raise ValueError(f"line numbers must be positive: {self.range_start}-{self.range_end}")
        if self.range_start > self.range_end:
            raise ValueError(f"range start {self.range_start} is after range end {self.range_end}")


def coalesce_ranges(ranges: Iterable[tuple[int, int]]) -> list[tuple[int, int]]:
    """Merge overlapping or touching inclusive ranges into disjoint runs."""
    ordered = sorted(ranges)
    if not ordered:
        return []

    merged: list[tuple[int, int]] = []
    current_start, current_end = ordered[0]
    for start, end in ordered[1:]:
        if start <= current_end + 1:
            current_end = max(current_end, end)
        else:
            merged.append((current_start, current_end))
            current_start, current_end = start, end
    merged.append((current_start, current_end))
    return merged


def _hunks_for_side(model: Sequence[DiffLine], side: Side, selections: list[Selection]) -> list[Hunk]:
    hunks: list[Hunk] = []
    for start, end in coalesce_ranges((s.range_start, s.range_end) for s in selections):
        selected = select_range(model, side, start, end)
        if selected is None:
            logger.info(
                "selection_outside_diff",
                extra={"extra": {"side": side.value, "range_start": start, "range_end": end}},
            )
            continue
        hunks.append(synthesize_hunk(selected))
    return sorted(hunks, key=lambda hunk: hunk.old_start)


def merge_selections(
    selections: Iterable[Selection],
    patches: Mapping[str, Optional[str]],
) -> dict[str, ExtractedChange]:
    """Coalesce per-file, per-side selections and extract one hunk per run.

    ``patches`` maps each file path to its unified diff text. Files with no
    patch, or whose selections all miss the diff, are left out of the result.
    OLD-side hunks come before NEW-side hunks; overlap between the two sides
    is left for ``reconcile_hunks``.
    """
    by_file: dict[str, dict[Side, list[Selection]]] = defaultdict(lambda: defaultdict(list))
    for selection in selections:
        by_file[selection.file_path][selection.side].append(selection)

    changes: dict[str, ExtractedChange] = {}
    for path, by_side in by_file.items():
        patch = patches.get(path)
        if not patch:
            logger.warning("patch_missing_for_file", extra={"extra": {"path": path}})
            continue

        model = parse_diff(patch)
        hunks: list[Hunk] = []
        for side in (Side.OLD, Side.NEW):
            if by_side.get(side):
                hunks.extend(_hunks_for_side(model, side, by_side[side]))

        if not hunks:
            logger.warning("no_hunks_extracted", extra={"extra": {"path": path}})
            continue
        changes[path] = ExtractedChange(path=path, hunks=hunks)

    return changes


def reconcile_hunks(hunks: Sequence[Hunk]) -> list[Hunk]:
    """Fold together hunks that cover overlapping stretches of the same diff.

    Selections on opposite sides can resolve to the same underlying
    replacement. Hunks whose line spans overlap are rebuilt from the union of
    their lines; the result is in diff order and safe to apply in one pass.
    """
    ordered = sorted(hunks, key=lambda hunk: hunk.span)
    groups: list[dict[int, DiffLine]] = []
    group_end = -1

    for hunk in ordered:
        start, end = hunk.span
        if groups and start <= group_end:
            groups[-1].update({line.index: line for line in hunk.lines})
            group_end = max(group_end, end)
        else:
            groups.append({line.index: line for line in hunk.lines})
            group_end = end

    return [synthesize_hunk([group[i] for i in sorted(group)]) for group in groups]
