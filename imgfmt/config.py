"""Environment-driven settings.

Every ``PassConfig`` scalar can be set through ``IMGFMT_*`` environment
variables or a ``.env`` file; codec options use a ``__`` delimiter.

Examples
--------
Override via environment::

    export IMGFMT_FORMAT=avif
    export IMGFMT_HASH_IN_NAME=true
    export IMGFMT_AVIF__QUALITY=50
    export IMGFMT_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from imgfmt.models.config import (
    AvifOptions,
    HtmlSizeMode,
    PassConfig,
    PngOptions,
    TargetFormat,
    WebpOptions,
)


class Settings(BaseSettings):
    """Process-level settings with environment variable overrides."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="IMGFMT_",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"

    format: TargetFormat = TargetFormat.WEBP
    reencode: bool = False
    html_size_mode: HtmlSizeMode = HtmlSizeMode.ADD_ONLY
    hash_in_name: bool = False
    hash_length: int = Field(8, ge=1, le=64)
    max_concurrent: int = Field(2, ge=1)
    codec_concurrency: int | None = Field(None, ge=1)

    webp: WebpOptions = WebpOptions()
    png: PngOptions = PngOptions()
    avif: AvifOptions = AvifOptions()

    def to_pass_config(self, **overrides: Any) -> PassConfig:
        """Build the validated pass configuration; ``None`` overrides are ignored."""
        values = self.model_dump(exclude={"log_level"})
        values.update({k: v for k, v in overrides.items() if v is not None})
        return PassConfig(**values)
