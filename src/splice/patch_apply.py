from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional, Sequence

from splice.diff_model import DiffLine, LineKind
from splice.hunks import Hunk


class PatchApplyError(ValueError):
    pass


class HunkOrderError(PatchApplyError):
    pass


def apply_hunks(base_lines: Sequence[str], hunks: Iterable[Hunk]) -> list[str]:
    """Apply hunks, sorted by ``old_start``, to base content in a single pass.

    Base lines between hunks are copied through untouched; deletion lines are
    dropped without checking them against the base. Raises HunkOrderError if a
    hunk starts inside base lines an earlier hunk already consumed.
    """
    result: list[str] = []
    consumed = 0

    for hunk in hunks:
        start_index = hunk.old_start - 1
        if start_index < consumed:
            raise HunkOrderError(
                f"Hunk {hunk.header} starts at old line {hunk.old_start} "
                f"but old lines up to {consumed} were already consumed"
            )

        result.extend(base_lines[consumed:start_index])

        for line in hunk.lines:
            if line.kind is LineKind.DELETION:
                continue
            result.append(line.text)

        consumed = start_index + hunk.old_count

    result.extend(base_lines[consumed:])
    return result


def _split_lines(text: str) -> list[str]:
    if not text:
        return []
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


def _marked_ending(base_lines: Sequence[str], hunks: Sequence[Hunk]) -> Optional[bool]:
    """Trailing newline implied by no-newline markers, or None when they say nothing.

    Only a hunk that runs to the end of the base can decide the ending.
    """
    if not hunks:
        return None
    last = hunks[-1]
    if last.old_start - 1 + last.old_count < len(base_lines):
        return None
    emitted = [line for line in last.lines if line.kind is not LineKind.DELETION]
    if emitted and emitted[-1].no_newline:
        return False
    if any(line.no_newline for line in last.lines if line.kind is LineKind.DELETION):
        return True
    return None


def _with_ending(line: DiffLine, suffix: str) -> DiffLine:
    raw = line.raw_text or " "
    if raw.endswith("\r"):
        raw = raw[:-1]
    return replace(line, raw_text=raw + suffix)


def apply_hunks_to_text(base_text: Optional[str], hunks: Iterable[Hunk]) -> str:
    """Text wrapper around apply_hunks.

    A missing or empty base is treated as a new file. Lines are split on
    ``\\n`` only. When the base uses CRLF endings, hunk lines are given them
    too; untouched base lines are copied as they are. The result ends with a
    newline when the base does (new files always do), unless its last line
    comes from a hunk line marked as having no newline. A marker on a
    deleted last line means the new ending has one.
    """
    base = base_text or ""
    hunks = list(hunks)
    base_lines = _split_lines(base)

    suffix = "\r" if "\r\n" in base else ""
    if base:
        hunks = [replace(hunk, lines=tuple(_with_ending(line, suffix) for line in hunk.lines)) for hunk in hunks]
    if suffix and base_lines and not base.endswith("\n"):
        # The last base line may stop being last; give it the file's ending.
        base_lines[-1] += suffix

    lines = apply_hunks(base_lines, hunks)
    if not lines:
        return ""

    marked = _marked_ending(base_lines, hunks)
    trailing = marked if marked is not None else base.endswith("\n") or not base
    if suffix and not trailing and lines[-1].endswith(suffix):
        lines[-1] = lines[-1][: -len(suffix)]
    return "\n".join(lines) + ("\n" if trailing else "")
