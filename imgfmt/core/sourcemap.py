"""Source map v3 handling for rewritten code chunks.

A rewrite of a chunk is described by its list of ``Edit``s.  ``EditMap``
turns those into a position remapping from the pre-edit generated text to
the post-edit text, and ``compose()`` pushes every segment of the chunk's
existing map through it, so the result still points from the new generated
positions back into the original sources.

Mappings are held decoded as absolute tuples per generated line:
``(gen_col,)``, ``(gen_col, src, src_line, src_col)`` or
``(gen_col, src, src_line, src_col, name)``.
"""

from __future__ import annotations

import bisect
from collections.abc import Sequence
from typing import Any

from imgfmt.core.references import Edit, apply_edits
from imgfmt.errors import SourceMapError

Segment = tuple[int, ...]

_B64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_B64_INDEX = {ch: i for i, ch in enumerate(_B64)}
_VLQ_SHIFT = 5
_VLQ_CONTINUATION = 1 << _VLQ_SHIFT
_VLQ_MASK = _VLQ_CONTINUATION - 1


# ----------------------------------------------------------------------
# Base64 VLQ
# ----------------------------------------------------------------------


def encode_vlq(value: int) -> str:
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    out = []
    while True:
        digit = vlq & _VLQ_MASK
        vlq >>= _VLQ_SHIFT
        if vlq:
            digit |= _VLQ_CONTINUATION
        out.append(_B64[digit])
        if not vlq:
            return "".join(out)


def decode_vlq(segment: str) -> list[int]:
    values: list[int] = []
    shift = 0
    acc = 0
    for ch in segment:
        try:
            digit = _B64_INDEX[ch]
        except KeyError:
            raise SourceMapError(f"Invalid base64 VLQ character {ch!r}") from None
        acc += (digit & _VLQ_MASK) << shift
        if digit & _VLQ_CONTINUATION:
            shift += _VLQ_SHIFT
            continue
        values.append(-(acc >> 1) if acc & 1 else acc >> 1)
        acc = 0
        shift = 0
    if shift:
        raise SourceMapError(f"Truncated VLQ segment {segment!r}")
    return values


def decode_mappings(mappings: str) -> list[list[Segment]]:
    """Decode a ``mappings`` string into absolute segments per generated line."""
    lines: list[list[Segment]] = []
    src = src_line = src_col = name = 0
    for raw_line in mappings.split(";"):
        gen_col = 0
        segments: list[Segment] = []
        for raw in raw_line.split(","):
            if not raw:
                continue
            fields = decode_vlq(raw)
            if len(fields) not in (1, 4, 5):
                raise SourceMapError(f"Segment {raw!r} has {len(fields)} fields")
            gen_col += fields[0]
            if len(fields) == 1:
                segments.append((gen_col,))
                continue
            src += fields[1]
            src_line += fields[2]
            src_col += fields[3]
            if len(fields) == 5:
                name += fields[4]
                segments.append((gen_col, src, src_line, src_col, name))
            else:
                segments.append((gen_col, src, src_line, src_col))
        lines.append(segments)
    return lines


def encode_mappings(lines: Sequence[Sequence[Segment]]) -> str:
    encoded_lines: list[str] = []
    prev = [0, 0, 0, 0, 0]
    for segments in lines:
        prev[0] = 0
        encoded: list[str] = []
        for seg in segments:
            fields = [seg[i] - prev[i] for i in range(len(seg))]
            prev[: len(seg)] = seg
            encoded.append("".join(encode_vlq(f) for f in fields))
        encoded_lines.append(",".join(encoded))
    return ";".join(encoded_lines)


# ----------------------------------------------------------------------
# Edit map
# ----------------------------------------------------------------------


def _line_starts(text: str) -> list[int]:
    starts = [0]
    for i, ch in enumerate(text):
        if ch == "\n":
            starts.append(i + 1)
    return starts


class EditMap:
    """Position remapping produced by applying *edits* to *original*.

    Unchanged text keeps its relative position; any position inside a
    replaced span maps to the start of the replacement.
    """

    def __init__(self, original: str, edits: Sequence[Edit]) -> None:
        self._edits = sorted(edits, key=lambda e: e.start)
        self._starts = [e.start for e in self._edits]
        self._shifts: list[int] = []
        shift = 0
        for e in self._edits:
            self._shifts.append(shift)
            shift += len(e.replacement) - (e.end - e.start)
        self._old_lines = _line_starts(original)
        self.text = apply_edits(original, self._edits)
        self._new_lines = _line_starts(self.text)

    @property
    def line_count(self) -> int:
        return len(self._new_lines)

    def map_offset(self, offset: int) -> int:
        i = bisect.bisect_right(self._starts, offset) - 1
        if i < 0:
            return offset
        edit = self._edits[i]
        if offset < edit.end:
            return edit.start + self._shifts[i]
        return offset + self._shifts[i] + len(edit.replacement) - (edit.end - edit.start)

    def map_position(self, line: int, column: int) -> tuple[int, int]:
        """Map a 0-based pre-edit ``(line, column)`` to its post-edit position."""
        if line >= len(self._old_lines):
            return line, column
        new_offset = self.map_offset(self._old_lines[line] + column)
        new_line = bisect.bisect_right(self._new_lines, new_offset) - 1
        return new_line, new_offset - self._new_lines[new_line]


# ----------------------------------------------------------------------
# Composition and lookup
# ----------------------------------------------------------------------


def compose(source_map: dict[str, Any], edit_map: EditMap) -> dict[str, Any]:
    """Compose a chunk's map with an edit map.

    The result maps post-edit generated positions to the original sources.
    ``sources`` and ``sourcesContent`` are carried over unchanged.
    """
    mappings = source_map.get("mappings", "")
    if not isinstance(mappings, str):
        raise SourceMapError(f"mappings must be a string, got {type(mappings).__name__}")
    lines = decode_mappings(mappings)

    new_lines: list[list[Segment]] = [[] for _ in range(edit_map.line_count)]
    for gen_line, segments in enumerate(lines):
        for seg in segments:
            line, col = edit_map.map_position(gen_line, seg[0])
            while line >= len(new_lines):
                new_lines.append([])
            new_lines[line].append((col, *seg[1:]))

    for segments in new_lines:
        segments.sort(key=lambda s: s[0])
        # Segments collapsed into one replacement keep the first mapping.
        deduped = [s for i, s in enumerate(segments) if i == 0 or s[0] != segments[i - 1][0]]
        segments[:] = deduped

    composed = dict(source_map)
    composed["version"] = 3
    composed["mappings"] = encode_mappings(new_lines)
    composed.setdefault("names", [])
    return composed


def original_position_for(
    source_map: dict[str, Any], line: int, column: int
) -> tuple[str, int, int] | None:
    """Resolve a 0-based generated position to ``(source, line, column)``.

    Uses the closest segment at or before *column* on *line*, the same rule
    browser devtools apply.
    """
    lines = decode_mappings(source_map.get("mappings", ""))
    if line >= len(lines):
        return None
    best: Segment | None = None
    for seg in lines[line]:
        if seg[0] > column:
            break
        best = seg
    if best is None or len(best) < 4:
        return None
    return source_map["sources"][best[1]], best[2], best[3]
