"""Asset references inside text: path spellings, matching and suffix handling.

A raster ``img/a.png`` referenced from ``pages/index.html`` may be spelled
several ways: ``img/a.png`` (bundle name, which also covers ``/img/a.png``),
``../img/a.png`` (relative to the referrer) and, when the relative path does
not climb, ``./a.png``-style.  All spellings of all names of interest are
compiled into a single alternation so each occurrence is matched exactly once,
leftmost-longest, and its ``?query``/``#fragment`` suffix is captured
separately from the path.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Mapping
from enum import Enum

from pydantic import BaseModel, ConfigDict

OPT_OUT_KEY = "imgfmt"
OPT_OUT_VALUE = "keep"
OPT_OUT_MARKER = f"{OPT_OUT_KEY}={OPT_OUT_VALUE}"

_QUERY_SEP_RE = re.compile(r"(&amp;|&)")
_SUFFIX = r"(?P<query>\?[^\s\"'`()<>#\\]*)?(?P<fragment>#[^\s\"'`()<>\\]*)?"


class Spelling(str, Enum):
    """How a reference spells its target, in match priority order."""

    ABSOLUTE = "absolute"  # "/" + bundle name
    DOT_RELATIVE = "dot_relative"  # "./" + relative path
    RELATIVE = "relative"  # relative to the referrer's directory
    RAW = "raw"  # bundle name as-is


SPELLING_PRIORITY: tuple[Spelling, ...] = tuple(Spelling)


def referrer_dir(referrer: str) -> str:
    return posixpath.dirname(referrer)


def path_spellings(target: str, referrer: str) -> dict[Spelling, str]:
    """Every spelling a reference from *referrer* to *target* may use."""
    rel = posixpath.relpath(target, referrer_dir(referrer) or ".")
    spellings = {
        Spelling.ABSOLUTE: "/" + target,
        Spelling.RELATIVE: rel,
        Spelling.RAW: target,
    }
    if not rel.startswith("../"):
        spellings[Spelling.DOT_RELATIVE] = "./" + rel
    return spellings


class Edit(BaseModel):
    """Replace ``text[start:end]`` with ``replacement``."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    replacement: str


class ReferenceMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: str
    spelling: Spelling
    start: int
    end: int
    path: str
    query: str
    fragment: str


class ReferenceMatcher:
    """Finds references to a set of bundle names inside one referrer's text.

    When two targets share a spelling (``a.png`` relative to ``img/`` vs the
    root-level ``a.png``), the higher-priority spelling kind wins.
    """

    def __init__(self, targets: Iterable[str], referrer: str) -> None:
        self.referrer = referrer
        self._by_spelling: dict[str, tuple[str, Spelling]] = {}
        per_target = {t: path_spellings(t, referrer) for t in targets}
        for kind in SPELLING_PRIORITY:
            for target, spellings in per_target.items():
                if kind in spellings:
                    self._by_spelling.setdefault(spellings[kind], (target, kind))
        self._pattern = self._compile(self._by_spelling)

    @staticmethod
    def _compile(spellings: Iterable[str]) -> re.Pattern[str] | None:
        ordered = sorted(spellings, key=len, reverse=True)
        if not ordered:
            return None
        alternation = "|".join(re.escape(s) for s in ordered)
        return re.compile(
            rf"(?<![\w.\-])(?P<path>{alternation})(?![\w\-]|\.\w)" + _SUFFIX
        )

    def finditer(self, text: str) -> Iterable[ReferenceMatch]:
        if self._pattern is None:
            return
        for m in self._pattern.finditer(text):
            target, kind = self._by_spelling[m.group("path")]
            yield ReferenceMatch(
                target=target,
                spelling=kind,
                start=m.start(),
                end=m.end(),
                path=m.group("path"),
                query=m.group("query") or "",
                fragment=m.group("fragment") or "",
            )


# ----------------------------------------------------------------------
# Query handling
# ----------------------------------------------------------------------


def query_params(query: str) -> list[str]:
    """Split ``?a=1&b=2`` (``&amp;`` tolerated) into ``["a=1", "b=2"]``."""
    if not query:
        return []
    return _QUERY_SEP_RE.split(query.lstrip("?"))[0::2]


def has_opt_out(query: str) -> bool:
    return OPT_OUT_MARKER in query_params(query)


def strip_opt_out(query: str) -> str:
    """Remove every opt-out marker from *query*, keeping the other parameters.

    Returns ``""`` when the marker was the only content.
    """
    if not query:
        return query
    parts = _QUERY_SEP_RE.split(query[1:])
    params = parts[0::2]
    seps = parts[1::2]
    kept: list[tuple[str, str]] = []
    for i, param in enumerate(params):
        if param == OPT_OUT_MARKER:
            continue
        kept.append((seps[i - 1] if i > 0 else "", param))
    if not kept:
        return ""
    rebuilt = kept[0][1] + "".join(sep + param for sep, param in kept[1:])
    return "?" + rebuilt


def split_suffix(url: str) -> str:
    """Drop any ``?query`` and ``#fragment`` from *url*."""
    return re.split(r"[?#]", url, maxsplit=1)[0]


# ----------------------------------------------------------------------
# Scanning and rewriting
# ----------------------------------------------------------------------


def find_opt_outs(text: str, referrer: str, candidates: Iterable[str]) -> set[str]:
    """Names among *candidates* referenced from *text* with the opt-out marker."""
    matcher = ReferenceMatcher(candidates, referrer)
    return {m.target for m in matcher.finditer(text) if has_opt_out(m.query)}


def reference_edits(
    text: str,
    referrer: str,
    rename_map: Mapping[str, str],
    keep_set: Iterable[str],
) -> list[Edit]:
    """Edits that apply *rename_map* and strip opt-out markers of *keep_set*.

    Renamed references get the same spelling of the new name with the
    original suffix byte-for-byte; kept references keep their path and lose
    only the marker.  Every occurrence is visited once.
    """
    keep = set(keep_set) - set(rename_map)
    matcher = ReferenceMatcher([*rename_map, *sorted(keep)], referrer)
    edits: list[Edit] = []
    for m in matcher.finditer(text):
        if m.target in rename_map:
            new_path = path_spellings(rename_map[m.target], referrer)[m.spelling]
            replacement = new_path + m.query + m.fragment
        else:
            replacement = m.path + strip_opt_out(m.query) + m.fragment
        if replacement != text[m.start:m.end]:
            edits.append(Edit(start=m.start, end=m.end, replacement=replacement))
    return edits


def apply_edits(text: str, edits: Iterable[Edit]) -> str:
    """Apply non-overlapping *edits* (sorted by start) to *text*."""
    out: list[str] = []
    cursor = 0
    for edit in edits:
        out.append(text[cursor:edit.start])
        out.append(edit.replacement)
        cursor = edit.end
    out.append(text[cursor:])
    return "".join(out)
