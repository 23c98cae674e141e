"""imgfmt: single-format image normalisation for build outputs.

Post-processes a finished bundle of emitted files:
  - converts every raster asset to one target format (webp, png or avif)
  - optionally content-hashes final image names
  - rewrites every reference in HTML, CSS and JS, across path spellings,
    keeping chunk source maps accurate
  - honours per-reference ``?imgfmt=keep`` opt-outs
  - writes intrinsic width/height on ``<img>`` and fixes ``<source type>``
"""

__version__ = "0.1.0"

from imgfmt.core.orchestrator import Orchestrator
from imgfmt.models.artifacts import Asset, Bundle, Chunk
from imgfmt.models.config import HtmlSizeMode, PassConfig, TargetFormat

__all__ = [
    "Orchestrator",
    "Asset",
    "Bundle",
    "Chunk",
    "HtmlSizeMode",
    "PassConfig",
    "TargetFormat",
    "__version__",
]
