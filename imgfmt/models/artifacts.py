"""Bundle and artifact models.

A bundle maps a final artifact name to either an ``Asset`` (raw bytes) or a
``Chunk`` (generated code with an optional source map).  Names are unique;
an entry may be emitted or removed during a pass but never lives under two
names at once.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict

from imgfmt.errors import BundleError


class Asset(BaseModel):
    """An emitted file carried as raw bytes (images, HTML, CSS, ...)."""

    model_config = ConfigDict(validate_assignment=True)

    kind: Literal["asset"] = "asset"
    source: bytes

    @property
    def text(self) -> str:
        """Content decoded as UTF-8; undecodable bytes survive a round trip."""
        return self.source.decode("utf-8", errors="surrogateescape")

    def set_text(self, text: str) -> None:
        self.source = text.encode("utf-8", errors="surrogateescape")


class Chunk(BaseModel):
    """A generated code chunk, optionally carrying a v3 source map dict."""

    model_config = ConfigDict(validate_assignment=True)

    kind: Literal["chunk"] = "chunk"
    code: str
    source_map: dict[str, Any] | None = None


Artifact = Union[Asset, Chunk]


class Bundle:
    """Name -> artifact mapping for one build output.

    Parameters
    ----------
    artifacts:
        Initial entries.  Insertion order is kept and defines the
        "bundle iteration order" the rename resolver walks in.
    """

    def __init__(self, artifacts: Mapping[str, Artifact] | None = None) -> None:
        self._entries: dict[str, Artifact] = dict(artifacts or {})

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __getitem__(self, name: str) -> Artifact:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, name: str) -> Artifact | None:
        return self._entries.get(name)

    def names(self) -> list[str]:
        return list(self._entries)

    def items(self) -> list[tuple[str, Artifact]]:
        """Snapshot of the current entries (safe to mutate the bundle while iterating)."""
        return list(self._entries.items())

    # ------------------------------------------------------------------
    # Host API
    # ------------------------------------------------------------------

    def emit(self, name: str, artifact: Artifact) -> None:
        """Add a new artifact under *name*.  Emitting over a live name is an error."""
        if name in self._entries:
            raise BundleError(f"Artifact already exists: {name}")
        self._entries[name] = artifact

    def remove(self, name: str) -> Artifact:
        """Remove and return the artifact stored under *name*."""
        try:
            return self._entries.pop(name)
        except KeyError:
            raise BundleError(f"Artifact not found: {name}") from None

    def __repr__(self) -> str:
        return f"<Bundle entries={len(self._entries)}>"


def artifact_text(artifact: Artifact) -> str:
    """Textual content of an artifact: chunk code or decoded asset bytes."""
    if isinstance(artifact, Chunk):
        return artifact.code
    return artifact.text
