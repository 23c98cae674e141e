"""Artifact classification: pure predicates over names and artifact kinds."""

from __future__ import annotations

import posixpath
import re

from imgfmt.models.artifacts import Artifact, Chunk

RASTER_EXTENSIONS: frozenset[str] = frozenset(
    {".png", ".jpg", ".jpeg", ".webp", ".gif", ".avif", ".heif", ".heic",
     ".tif", ".tiff", ".bmp", ".jp2"}
)
TEXT_EXTENSIONS: frozenset[str] = frozenset(
    {".html", ".htm", ".css", ".js", ".mjs", ".cjs", ".ts", ".mts", ".cts"}
)
MARKUP_EXTENSIONS: frozenset[str] = frozenset({".html", ".htm"})

RASTER_EXT_RE = re.compile(
    r"\.(?:png|jpe?g|webp|gif|avif|heif|heic|tiff?|bmp|jp2)$", re.IGNORECASE
)


def extension_of(name: str) -> str:
    """Lower-cased extension of the last path segment, including the dot."""
    return posixpath.splitext(name)[1].lower()


def is_raster(name: str) -> bool:
    return extension_of(name) in RASTER_EXTENSIONS


def is_text_like(name: str) -> bool:
    return extension_of(name) in TEXT_EXTENSIONS


def is_markup(name: str) -> bool:
    return extension_of(name) in MARKUP_EXTENSIONS


def is_code_chunk(artifact: Artifact) -> bool:
    return isinstance(artifact, Chunk)


def is_rewritable(name: str, artifact: Artifact) -> bool:
    """Whether references inside this artifact are subject to rewriting."""
    return is_code_chunk(artifact) or is_text_like(name)


def has_source_map(artifact: Artifact) -> bool:
    return isinstance(artifact, Chunk) and artifact.source_map is not None


def swap_extension(name: str, extension: str) -> str:
    """Replace a recognised raster extension (any case) with *extension*."""
    return RASTER_EXT_RE.sub(extension, name)
