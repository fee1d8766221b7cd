from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from splice.diff_model import DiffLine, LineKind, Side, parse_diff

NO_NEWLINE_MARKER = "\\ No newline at end of file"


def _range_label(start: int, count: int) -> str:
    # Unified diffs name the line before an empty range.
    shown = start - 1 if count == 0 else start
    return f"{max(shown, 0)},{count}"


@dataclass(frozen=True)
class Hunk:
    """A contiguous run of diff lines with recomputed header fields.

    ``old_start`` is the first old line the hunk touches; for a pure insertion
    it is the old line the new text is inserted in front of.
    """

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[DiffLine, ...] = field(default_factory=tuple)

    @property
    def header(self) -> str:
        return f"@@ -{_range_label(self.old_start, self.old_count)} +{_range_label(self.new_start, self.new_count)} @@"

    @property
    def body(self) -> list[str]:
        rows: list[str] = []
        for line in self.lines:
            rows.append(line.raw_text)
            if line.no_newline:
                rows.append(NO_NEWLINE_MARKER)
        return rows

    @property
    def content(self) -> str:
        return "\n".join([self.header, *self.body])

    @property
    def span(self) -> tuple[int, int]:
        """First and last flat-model index covered by this hunk."""
        indexes = [line.index for line in self.lines]
        return (min(indexes), max(indexes)) if indexes else (0, -1)


@dataclass
class ExtractedChange:
    path: str
    hunks: list[Hunk] = field(default_factory=list)


def _start(lines: Sequence[DiffLine], side: Side) -> int:
    for line in lines:
        coordinate = line.coordinate(side)
        if coordinate is not None:
            return coordinate
    return max(lines[0].cursor(side), 1)


def synthesize_hunk(lines: Sequence[DiffLine]) -> Hunk:
    if not lines:
        raise ValueError("cannot build a hunk from an empty selection")

    old_count = sum(1 for line in lines if line.kind is not LineKind.ADDITION)
    new_count = sum(1 for line in lines if line.kind is not LineKind.DELETION)

    return Hunk(
        old_start=_start(lines, Side.OLD),
        old_count=old_count,
        new_start=_start(lines, Side.NEW),
        new_count=new_count,
        lines=tuple(lines),
    )


def parse_hunk(text: str) -> Optional[Hunk]:
    """Read back a single serialized hunk (header plus body)."""
    lines = parse_diff(text)
    if not lines:
        return None
    return synthesize_hunk(lines)
