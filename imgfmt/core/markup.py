"""Markup post-processing: ``<source type>`` correction and ``<img>`` sizing.

Tags are located with a quote-aware pattern and their attributes tokenised
individually, so nothing depends on attribute order or quoting style.
Anything that does not parse cleanly is returned untouched.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from pydantic import BaseModel, ConfigDict

from imgfmt.core.classifier import extension_of
from imgfmt.core.references import split_suffix
from imgfmt.models.config import HtmlSizeMode
from imgfmt.models.pass_state import Dimensions


MEDIA_TYPES: dict[str, str] = {
    ".webp": "image/webp",
    ".png": "image/png",
    ".apng": "image/apng",
    ".avif": "image/avif",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".bmp": "image/bmp",
    ".ico": "image/x-icon",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".jp2": "image/jp2",
}


def _tag_re(tag: str) -> re.Pattern[str]:
    return re.compile(
        rf"<(?P<tag>{tag})\b(?P<attrs>(?:[^>\"']|\"[^\"]*\"|'[^']*')*)>",
        re.IGNORECASE,
    )


IMG_TAG_RE = _tag_re("img")
SOURCE_TAG_RE = _tag_re("source")
ATTR_RE = re.compile(
    r"(?P<name>[^\s=/>\"']+)"
    r"(?:\s*=\s*(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)'|(?P<uq>[^\s\"'=<>`]+)))?"
)
_TAIL_RE = re.compile(r"\s*/?\s*$")


class Attribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str | None
    start: int
    end: int
    # Span of the value without quotes; equal to (end, end) for bare attributes.
    value_start: int
    value_end: int


def parse_attributes(attrs: str) -> list[Attribute]:
    parsed: list[Attribute] = []
    for m in ATTR_RE.finditer(attrs):
        group = next((g for g in ("dq", "sq", "uq") if m.group(g) is not None), None)
        if group is None:
            value, vstart, vend = None, m.end(), m.end()
        else:
            value, vstart, vend = m.group(group), m.start(group), m.end(group)
        parsed.append(
            Attribute(
                name=m.group("name").lower(),
                value=value,
                start=m.start(),
                end=m.end(),
                value_start=vstart,
                value_end=vend,
            )
        )
    return parsed


def _find(attrs: Iterable[Attribute], name: str) -> Attribute | None:
    return next((a for a in attrs if a.name == name), None)


def _split_tail(attrs: str) -> tuple[str, str]:
    m = _TAIL_RE.search(attrs)
    return attrs[: m.start()], attrs[m.start():]


# ----------------------------------------------------------------------
# <source type="..."> correction
# ----------------------------------------------------------------------


def media_type_for(url: str) -> str | None:
    return MEDIA_TYPES.get(extension_of(split_suffix(url)))


def first_srcset_url(srcset: str) -> str | None:
    candidate = srcset.strip().split(",")[0].split()
    return candidate[0] if candidate else None


def _correct_source(m: re.Match[str]) -> str:
    full = m.group(0)
    attrs_text = m.group("attrs")
    attrs = parse_attributes(attrs_text)
    srcset = _find(attrs, "srcset")
    if srcset is None or not srcset.value:
        return full
    url = first_srcset_url(srcset.value)
    media = media_type_for(url) if url else None
    if media is None:
        return full

    type_attr = _find(attrs, "type")
    if type_attr is None:
        return f"<{m.group('tag')} type=\"{media}\"{attrs_text}>"
    if type_attr.value == media:
        return full
    if type_attr.value is None:
        new_attrs = (
            attrs_text[: type_attr.start] + f'type="{media}"' + attrs_text[type_attr.end:]
        )
    else:
        new_attrs = (
            attrs_text[: type_attr.value_start] + media + attrs_text[type_attr.value_end:]
        )
    return f"<{m.group('tag')}{new_attrs}>"


def correct_source_types(html: str) -> str:
    """Make each ``<source srcset>``'s ``type`` match its first candidate URL."""
    return SOURCE_TAG_RE.sub(_correct_source, html)


# ----------------------------------------------------------------------
# <img width/height> injection
# ----------------------------------------------------------------------


def resolve_final_name(src: str, names: Iterable[str]) -> str | None:
    """Longest bundle name that *src* (sans query/fragment) ends with on a path boundary."""
    cleaned = split_suffix(src)
    best: str | None = None
    for name in names:
        if cleaned == name or cleaned.endswith("/" + name):
            if best is None or len(name) > len(best):
                best = name
    return best


def _strip_size_attrs(attrs_text: str, attrs: Iterable[Attribute]) -> str:
    out = attrs_text
    for attr in sorted(attrs, key=lambda a: a.start, reverse=True):
        if attr.name not in ("width", "height"):
            continue
        start = attr.start
        while start > 0 and out[start - 1].isspace():
            start -= 1
        out = out[:start] + out[attr.end:]
    return out


def _inject_size(
    m: re.Match[str],
    dimensions: Mapping[str, Dimensions],
    mode: HtmlSizeMode,
) -> str:
    full = m.group(0)
    attrs_text = m.group("attrs")
    attrs = parse_attributes(attrs_text)
    src = _find(attrs, "src")
    if src is None or not src.value:
        return full
    final_name = resolve_final_name(src.value, dimensions)
    if final_name is None:
        return full
    dims = dimensions[final_name]

    if mode is HtmlSizeMode.ADD_ONLY:
        if _find(attrs, "width") or _find(attrs, "height"):
            return full
        body, tail = _split_tail(attrs_text)
    else:
        body, tail = _split_tail(_strip_size_attrs(attrs_text, attrs))

    return f'<{m.group("tag")}{body} width="{dims.width}" height="{dims.height}"{tail}>'


def inject_intrinsic_sizes(
    html: str,
    dimensions: Mapping[str, Dimensions],
    mode: HtmlSizeMode,
) -> str:
    """Write ``width``/``height`` on every ``<img>`` whose ``src`` resolves to a known size."""
    if mode is HtmlSizeMode.OFF or not dimensions:
        return html
    return IMG_TAG_RE.sub(lambda m: _inject_size(m, dimensions, mode), html)
