"""imgfmt data models — all Pydantic v2."""

from imgfmt.models.artifacts import Artifact, Asset, Bundle, Chunk, artifact_text
from imgfmt.models.config import (
    AvifOptions,
    CodecOptions,
    HtmlSizeMode,
    PassConfig,
    PngOptions,
    TargetFormat,
    WebpOptions,
)
from imgfmt.models.pass_state import (
    BundleMutation,
    Dimensions,
    MutationKind,
    PassContext,
    PassReport,
)

__all__ = [
    # artifacts
    "Artifact",
    "Asset",
    "Bundle",
    "Chunk",
    "artifact_text",
    # config
    "AvifOptions",
    "CodecOptions",
    "HtmlSizeMode",
    "PassConfig",
    "PngOptions",
    "TargetFormat",
    "WebpOptions",
    # pass state
    "BundleMutation",
    "Dimensions",
    "MutationKind",
    "PassContext",
    "PassReport",
]
