"""Shared test fixtures for imgfmt."""

from __future__ import annotations

import io
import threading
import time
from collections.abc import Callable
from typing import Any

import pytest
from PIL import Image

from imgfmt.core.codec import ImageMetadata
from imgfmt.core.orchestrator import Orchestrator
from imgfmt.models.artifacts import Artifact, Asset, Bundle
from imgfmt.models.config import CodecOptions, PassConfig, TargetFormat


# ---------------------------------------------------------------------------
# Fake codec: deterministic bytes, no pixels involved
# ---------------------------------------------------------------------------


class FakeCodec:
    """Codec double: ``encode`` prefixes the payload with the format name.

    Payloads starting with ``b"garbage"`` fail ``metadata``; payloads
    containing *fail_on* fail ``encode``.
    """

    def __init__(
        self,
        width: int = 10,
        height: int = 20,
        *,
        fail_on: bytes | None = None,
        delay: float = 0.0,
    ) -> None:
        self.width = width
        self.height = height
        self.fail_on = fail_on
        self.delay = delay
        self.encoded: list[bytes] = []
        self.max_active = 0
        self._active = 0
        self._lock = threading.Lock()

    def _enter(self) -> None:
        with self._lock:
            self._active += 1
            self.max_active = max(self.max_active, self._active)

    def _leave(self) -> None:
        with self._lock:
            self._active -= 1

    def metadata(self, data: bytes) -> ImageMetadata:
        if data.startswith(b"garbage"):
            raise ValueError("cannot identify image")
        return ImageMetadata(width=self.width, height=self.height, format="FAKE")

    def encode(self, data: bytes, fmt: TargetFormat, options: CodecOptions) -> bytes:
        self._enter()
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.fail_on is not None and self.fail_on in data:
                raise RuntimeError("encoder crashed")
            with self._lock:
                self.encoded.append(data)
            return f"{fmt.value}:".encode() + data
        finally:
            self._leave()


@pytest.fixture
def fake_codec() -> FakeCodec:
    """Provide a fresh FakeCodec reporting 10x20 images."""
    return FakeCodec()


@pytest.fixture
def run_pass(fake_codec: FakeCodec) -> Callable[..., tuple[Bundle, Any]]:
    """Factory fixture: run one pass over a dict of artifacts with the fake codec."""

    def _run(
        artifacts: dict[str, Artifact],
        codec: Any = None,
        **config: Any,
    ) -> tuple[Bundle, Any]:
        bundle = Bundle(artifacts)
        orch = Orchestrator(PassConfig(**config), codec=codec or fake_codec)
        report = orch.run(bundle)
        return bundle, report

    return _run


# ---------------------------------------------------------------------------
# Real images via Pillow
# ---------------------------------------------------------------------------


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory fixture: encode a solid-colour image with Pillow."""

    def _factory(
        width: int = 64,
        height: int = 48,
        fmt: str = "PNG",
        mode: str = "RGB",
        color: Any = (200, 30, 30),
    ) -> bytes:
        if mode == "RGBA" and len(color) == 3:
            color = (*color, 128)
        im = Image.new(mode, (width, height), color)
        buf = io.BytesIO()
        im.save(buf, format=fmt)
        return buf.getvalue()

    return _factory


@pytest.fixture
def codec_factory() -> type[FakeCodec]:
    """Expose FakeCodec so tests can build variants (failing, slow, sized)."""
    return FakeCodec


@pytest.fixture
def html_doc() -> Callable[[str], Asset]:
    """Factory fixture: wrap a body fragment in a minimal HTML document asset."""

    def _factory(body: str) -> Asset:
        return Asset(source=f"<!doctype html><html><body>{body}</body></html>".encode())

    return _factory
