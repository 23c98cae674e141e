"""Exception hierarchy for imgfmt."""

from __future__ import annotations


class ImgfmtError(RuntimeError):
    """Base class for every error raised by imgfmt."""


class BundleError(ImgfmtError):
    """Raised on an invalid bundle mutation (duplicate emit, missing entry)."""


class EncodeError(ImgfmtError):
    """Raised when the codec fails to transcode an asset.  Always fatal to the pass."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"Failed to encode {name}: {message}")
        self.name = name


class RenameConflictError(ImgfmtError):
    """Raised when a second rename is recorded for an already-frozen name."""


class SourceMapError(ImgfmtError):
    """Raised when a source map cannot be decoded."""
