"""Image codec backends and the bounded-concurrency encode scheduler.

The ``ImageCodec`` Protocol is the seam to the pixel-level library.  The
default ``PillowCodec`` uses Pillow; tests and hosts may pass any object
with the same two methods.

Every codec call in a pass goes through one ``EncodeScheduler``, whose
semaphore caps how many calls are in flight at once.  Calls run in worker
threads via ``asyncio.to_thread`` so the event loop only suspends at the
codec boundary.
"""

from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from PIL import Image
from pydantic import BaseModel, ConfigDict

from imgfmt.errors import EncodeError
from imgfmt.models.config import CodecOptions, PngOptions, TargetFormat
from imgfmt.models.pass_state import Dimensions

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ANIMATED_TARGETS = {TargetFormat.WEBP, TargetFormat.AVIF}


class ImageMetadata(BaseModel):
    """Best-effort header information for an image payload."""

    model_config = ConfigDict(frozen=True)

    width: int | None = None
    height: int | None = None
    format: str | None = None
    frames: int = 1


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ImageCodec(Protocol):
    """Protocol for pixel-level codec backends."""

    def metadata(self, data: bytes) -> ImageMetadata:
        """Read the image header.  May raise on unreadable input."""
        ...

    def encode(self, data: bytes, fmt: TargetFormat, options: CodecOptions) -> bytes:
        """Transcode *data* to *fmt*.  Raises on failure."""
        ...


# ---------------------------------------------------------------------------
# Pillow backend
# ---------------------------------------------------------------------------


class PillowCodec:
    """Pillow-backed codec.

    Parameters
    ----------
    threads:
        Encoder thread count handed to Pillow where the format supports it
        (AVIF ``max_threads``).  ``None`` keeps Pillow's default.
    """

    def __init__(self, threads: int | None = None) -> None:
        self.threads = threads

    def metadata(self, data: bytes) -> ImageMetadata:
        with Image.open(io.BytesIO(data)) as im:
            width, height = im.size
            return ImageMetadata(
                width=width,
                height=height,
                format=im.format,
                frames=getattr(im, "n_frames", 1),
            )

    def encode(self, data: bytes, fmt: TargetFormat, options: CodecOptions) -> bytes:
        kwargs: dict[str, Any] = options.save_kwargs()
        if fmt is TargetFormat.AVIF and self.threads:
            kwargs["max_threads"] = self.threads

        out = io.BytesIO()
        with Image.open(io.BytesIO(data)) as im:
            if fmt in _ANIMATED_TARGETS and getattr(im, "is_animated", False):
                im.save(out, format=fmt.pillow_format, save_all=True, **kwargs)
                return out.getvalue()

            im.load()
            frame = self._prepare(im, fmt, options)
            frame.save(out, format=fmt.pillow_format, **kwargs)
        return out.getvalue()

    @staticmethod
    def _prepare(im: Image.Image, fmt: TargetFormat, options: CodecOptions) -> Image.Image:
        has_alpha = "A" in im.mode or "transparency" in im.info
        if fmt is TargetFormat.PNG:
            if isinstance(options, PngOptions) and options.palette and im.mode != "P":
                base = im.convert("RGBA" if has_alpha else "RGB")
                return base.quantize(colors=options.colors)
            if im.mode in ("CMYK", "YCbCr", "LAB", "HSV"):
                return im.convert("RGB")
            return im
        if im.mode not in ("RGB", "RGBA"):
            return im.convert("RGBA" if has_alpha else "RGB")
        return im


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class EncodeScheduler:
    """Runs codec calls through a shared concurrency gate.

    Create one per pass, inside the running event loop.

    Parameters
    ----------
    codec:
        Backend performing the actual work.
    max_concurrent:
        Capacity of the gate.  Callers beyond it queue until a slot frees.
    """

    def __init__(self, codec: ImageCodec, max_concurrent: int = 2) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.codec = codec
        self.max_concurrent = max_concurrent
        self._gate = asyncio.Semaphore(max_concurrent)
        self._in_flight = 0
        self.peak_in_flight = 0

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        async with self._gate:
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
            try:
                return await asyncio.to_thread(fn, *args)
            finally:
                self._in_flight -= 1

    async def probe_dimensions(self, data: bytes, name: str = "") -> Dimensions | None:
        """Intrinsic size of *data*, or ``None`` when it cannot be read.  Never raises."""
        try:
            meta = await self._call(self.codec.metadata, data)
        except Exception as exc:
            logger.debug("Dimension probe failed for %s: %s", name or "<bytes>", exc)
            return None
        if not meta.width or not meta.height:
            logger.debug("No dimensions reported for %s", name or "<bytes>")
            return None
        return Dimensions(width=meta.width, height=meta.height)

    async def encode(
        self,
        data: bytes,
        fmt: TargetFormat,
        options: CodecOptions,
        name: str = "",
    ) -> bytes:
        """Transcode *data*; any codec failure is raised as ``EncodeError``."""
        try:
            return await self._call(self.codec.encode, data, fmt, options)
        except EncodeError:
            raise
        except Exception as exc:
            raise EncodeError(name or "<bytes>", str(exc) or type(exc).__name__) from exc
