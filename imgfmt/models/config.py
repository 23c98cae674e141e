"""Pass configuration models, all frozen and validated up front.

Unknown keys and out-of-range values raise ``pydantic.ValidationError`` at
construction time, so a bad configuration never reaches the pass.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class TargetFormat(str, Enum):
    """Raster format every converted asset ends up in."""

    WEBP = "webp"
    PNG = "png"
    AVIF = "avif"

    @property
    def extension(self) -> str:
        return f".{self.value}"

    @property
    def pillow_format(self) -> str:
        return self.value.upper()


class HtmlSizeMode(str, Enum):
    """How intrinsic ``width``/``height`` attributes are written to ``<img>``."""

    OFF = "off"
    ADD_ONLY = "add-only"
    OVERWRITE = "overwrite"


class CodecOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    def save_kwargs(self) -> dict[str, Any]:
        """Keyword arguments forwarded verbatim to ``Image.save()``."""
        return {k: v for k, v in self.model_dump().items() if v is not None}


class WebpOptions(CodecOptions):
    quality: int = Field(88, ge=0, le=100)
    alpha_quality: int = Field(90, ge=0, le=100)
    lossless: bool = False
    method: int = Field(4, ge=0, le=6)
    exact: bool = False


class PngOptions(CodecOptions):
    compress_level: int = Field(9, ge=0, le=9)
    optimize: bool = True
    # Quantise to a palette before saving; not a Pillow save option.
    palette: bool = True
    colors: int = Field(256, ge=2, le=256)

    def save_kwargs(self) -> dict[str, Any]:
        kwargs = super().save_kwargs()
        kwargs.pop("palette")
        kwargs.pop("colors")
        return kwargs


class AvifOptions(CodecOptions):
    quality: int = Field(60, ge=0, le=100)
    speed: int = Field(5, ge=0, le=10)
    subsampling: Literal["4:0:0", "4:2:0", "4:2:2", "4:4:4"] = "4:2:0"


class PassConfig(BaseModel):
    """Resolved configuration for one conversion pass."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    format: TargetFormat = TargetFormat.WEBP
    reencode: bool = False
    html_size_mode: HtmlSizeMode = HtmlSizeMode.ADD_ONLY
    hash_in_name: bool = False
    hash_length: int = Field(8, ge=1, le=64)
    max_concurrent: int = Field(2, ge=1)
    # Pillow's own encoder thread count (AVIF ``max_threads``); unset keeps its default.
    codec_concurrency: int | None = Field(None, ge=1)
    webp: WebpOptions = WebpOptions()
    png: PngOptions = PngOptions()
    avif: AvifOptions = AvifOptions()

    def codec_options(self) -> CodecOptions:
        """Option model for the configured target format."""
        return {
            TargetFormat.WEBP: self.webp,
            TargetFormat.PNG: self.png,
            TargetFormat.AVIF: self.avif,
        }[self.format]
