from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

_HUNK_HEADER_RE = re.compile(r"^@@\s+-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s+@@")


class LineKind(str, Enum):
    CONTEXT = "context"
    ADDITION = "addition"
    DELETION = "deletion"


class Side(str, Enum):
    OLD = "OLD"
    NEW = "NEW"


@dataclass(frozen=True)
class HunkHeader:
    old_start: int
    old_count: int
    new_start: int
    new_count: int


@dataclass(frozen=True)
class DiffLine:
    """One physical line of a parsed hunk body.

    ``old_cursor``/``new_cursor`` hold the running counters when the line was
    read: the line's own coordinate when it has one, otherwise the coordinate
    of the next line on that side. ``no_newline`` marks the last line of a
    file that has no terminating newline.
    """

    kind: LineKind
    old_line: Optional[int]
    new_line: Optional[int]
    raw_text: str
    index: int = 0
    hunk_index: int = 0
    old_cursor: int = 0
    new_cursor: int = 0
    no_newline: bool = False

    @property
    def text(self) -> str:
        return self.raw_text[1:] if self.raw_text else ""

    def coordinate(self, side: Side) -> Optional[int]:
        return self.old_line if side is Side.OLD else self.new_line

    def cursor(self, side: Side) -> int:
        return self.old_cursor if side is Side.OLD else self.new_cursor


def parse_hunk_header(line: str) -> Optional[HunkHeader]:
    match = _HUNK_HEADER_RE.match(line)
    if not match:
        return None

    return HunkHeader(
        old_start=int(match.group(1)),
        old_count=int(match.group(2) or "1"),
        new_start=int(match.group(3)),
        new_count=int(match.group(4) or "1"),
    )


def _first_line_number(start: int, count: int) -> int:
    # An empty range names the line before the change.
    return start + 1 if count == 0 else start


def _split_rows(text: str) -> list[str]:
    # Only "\n" ends a diff row; "\r" and form feeds belong to the line content.
    rows = text.split("\n")
    if text.endswith("\n"):
        rows.pop()
    return rows


def parse_diff(raw: str) -> list[DiffLine]:
    """Parse the unified diff of a single file into a flat list of lines.

    Hunk headers reset the running counters; they are not emitted. Anything
    before the first header is ignored, so text without a valid header yields
    an empty list. A ``\\ No newline at end of file`` marker is folded into
    the line it follows.
    """
    lines: list[DiffLine] = []
    old_line = new_line = 0
    hunk_index = -1

    for raw_line in _split_rows(raw or ""):
        header = parse_hunk_header(raw_line)
        if header is not None:
            old_line = _first_line_number(header.old_start, header.old_count)
            new_line = _first_line_number(header.new_start, header.new_count)
            hunk_index += 1
            continue

        if hunk_index < 0:
            continue

        if raw_line.startswith("\\"):
            if lines and lines[-1].hunk_index == hunk_index:
                lines[-1] = replace(lines[-1], no_newline=True)
            continue

        common = {
            "raw_text": raw_line,
            "index": len(lines),
            "hunk_index": hunk_index,
            "old_cursor": old_line,
            "new_cursor": new_line,
        }

        if raw_line.startswith("+"):
            lines.append(DiffLine(kind=LineKind.ADDITION, old_line=None, new_line=new_line, **common))
            new_line += 1
        elif raw_line.startswith("-"):
            lines.append(DiffLine(kind=LineKind.DELETION, old_line=old_line, new_line=None, **common))
            old_line += 1
        else:
            lines.append(DiffLine(kind=LineKind.CONTEXT, old_line=old_line, new_line=new_line, **common))
            old_line += 1
            new_line += 1

    return lines


def group_hunks(lines: list[DiffLine]) -> list[list[DiffLine]]:
    """Split a flat model back into its per-header runs, in diff order."""
    groups: dict[int, list[DiffLine]] = {}
    for line in lines:
        groups.setdefault(line.hunk_index, []).append(line)
    return [groups[key] for key in sorted(groups)]
