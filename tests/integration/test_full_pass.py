"""End-to-end integration tests: full passes with real Pillow encodes.

These tests exercise the Orchestrator, all four stages, PillowCodec and
DirectoryHost working together on realistic build output.
"""

from __future__ import annotations

import hashlib
import io
import json
from pathlib import Path

import pytest
from PIL import Image

from imgfmt.core.bundle_io import DirectoryHost
from imgfmt.core.orchestrator import Orchestrator
from imgfmt.core.sourcemap import encode_mappings, original_position_for
from imgfmt.models.artifacts import Asset, Bundle, Chunk
from imgfmt.models.config import PassConfig


def _open(data: bytes) -> Image.Image:
    im = Image.open(io.BytesIO(data))
    im.load()
    return im


class TestFullPass:
    """Build output in, normalised build output out."""

    @pytest.fixture
    def banner(self, make_image) -> bytes:
        return make_image(800, 600, fmt="JPEG")

    def test_banner_converted_and_sized(self, banner, html_doc):
        bundle = Bundle({
            "index.html": html_doc('<img src="/images/banner.jpg">'),
            "images/banner.jpg": Asset(source=banner),
        })
        report = Orchestrator(PassConfig(format="webp", html_size_mode="add-only")).run(bundle)

        assert report.rename_map == {"images/banner.jpg": "images/banner.webp"}
        assert "images/banner.jpg" not in bundle
        encoded = bundle["images/banner.webp"].source
        assert _open(encoded).format == "WEBP"
        assert b'<img src="/images/banner.webp" width="800" height="600">' in bundle["index.html"].source

    def test_hashed_name_uses_encoded_digest(self, banner, html_doc):
        bundle = Bundle({
            "index.html": html_doc('<img src="/images/banner.jpg">'),
            "images/banner.jpg": Asset(source=banner),
        })
        report = Orchestrator(PassConfig(hash_in_name=True, hash_length=8)).run(bundle)

        new_name = report.rename_map["images/banner.jpg"]
        digest = hashlib.sha256(bundle[new_name].source).hexdigest()[:8]
        assert new_name == f"images/banner-{digest}.webp"
        assert f'src="/{new_name}"'.encode() in bundle["index.html"].source

    def test_opt_out_with_overwrite_sizes(self, make_image, html_doc):
        original = make_image(64, 48)
        bundle = Bundle({
            "index.html": html_doc('<img src="/img/a.png?imgfmt=keep" width="1" height="1">'),
            "img/a.png": Asset(source=original),
        })
        report = Orchestrator(PassConfig(html_size_mode="overwrite")).run(bundle)

        assert report.keep_set == ["img/a.png"]
        assert bundle["img/a.png"].source == original
        assert b'<img src="/img/a.png" width="64" height="48">' in bundle["index.html"].source

    def test_stale_source_type_corrected(self, make_image, html_doc):
        bundle = Bundle({
            "index.html": html_doc(
                '<picture><source type="image/png" srcset="/a.png 1x"><img src="/a.png"></picture>'
            ),
            "a.png": Asset(source=make_image(10, 10)),
        })
        Orchestrator().run(bundle)
        html = bundle["index.html"].source
        assert b'<source type="image/webp" srcset="/a.webp 1x">' in html
        assert b'<img src="/a.webp" width="10" height="10">' in html

    def test_passthrough_when_already_target(self, make_image):
        webp = make_image(12, 12, fmt="WEBP")
        bundle = Bundle({"a.webp": Asset(source=webp)})
        report = Orchestrator().run(bundle)
        assert report.rename_map == {}
        assert bundle["a.webp"].source == webp

    def test_chunk_source_map_follows_rewrite(self, make_image):
        code = 'import "./x.js";\nconst logo = "/img/logo.png"; render(logo);\n'
        lines = [
            [(0, 0, 0, 0)],
            [(0, 0, 3, 0), (code.splitlines()[1].index("render"), 0, 4, 2)],
        ]
        source_map = {
            "version": 3,
            "sources": ["src/main.ts"],
            "sourcesContent": ["// main"],
            "names": [],
            "mappings": encode_mappings(lines),
        }
        bundle = Bundle({
            "assets/index.js": Chunk(code=code, source_map=source_map),
            "img/logo.png": Asset(source=make_image(4, 4)),
        })
        Orchestrator(PassConfig(hash_in_name=True)).run(bundle)

        chunk = bundle["assets/index.js"]
        new_line = chunk.code.splitlines()[1]
        assert "/img/logo-" in new_line
        assert original_position_for(chunk.source_map, 1, new_line.index("render")) == (
            "src/main.ts",
            4,
            2,
        )
        assert chunk.source_map["sourcesContent"] == ["// main"]

    def test_second_pass_is_no_op(self, banner, html_doc):
        bundle = Bundle({
            "index.html": html_doc('<img src="/images/banner.jpg">'),
            "images/banner.jpg": Asset(source=banner),
        })
        Orchestrator().run(bundle)
        snapshot = {name: bundle[name].source for name in bundle}

        report = Orchestrator().run(bundle)

        assert report.rename_map == {}
        assert {name: bundle[name].source for name in bundle} == snapshot


class TestDirectoryRoundTrip:
    """Load a directory, run a pass, write it back."""

    def test_directory_pass(self, tmp_path: Path, make_image):
        (tmp_path / "img").mkdir()
        (tmp_path / "assets").mkdir()
        (tmp_path / "img/hero.png").write_bytes(make_image(20, 10, mode="RGBA"))
        (tmp_path / "index.html").write_text('<img src="img/hero.png" alt="hero">', encoding="utf-8")
        (tmp_path / "assets/app.js").write_text('fetch("/img/hero.png")', encoding="utf-8")
        (tmp_path / "assets/app.js.map").write_text(
            json.dumps({"version": 3, "sources": ["app.ts"], "mappings": "AAAA"}), encoding="utf-8"
        )

        host = DirectoryHost(tmp_path)
        bundle = host.load()
        Orchestrator(PassConfig(format="png")).run(bundle)
        host.write(bundle)

        assert (tmp_path / "img/hero.png").exists()
        assert sorted(p.name for p in (tmp_path / "img").iterdir()) == ["hero.png"]
        assert (tmp_path / "assets/app.js").read_text(encoding="utf-8") == 'fetch("/img/hero.png")'
        assert json.loads((tmp_path / "assets/app.js.map").read_text(encoding="utf-8"))["mappings"]
        html = (tmp_path / "index.html").read_text(encoding="utf-8")
        assert html == '<img src="img/hero.png" alt="hero" width="20" height="10">'

    def test_directory_conversion_removes_originals(self, tmp_path: Path, make_image):
        (tmp_path / "a.gif").write_bytes(make_image(6, 6, fmt="GIF"))
        (tmp_path / "style.css").write_text("div{background:url(./a.gif)}", encoding="utf-8")

        host = DirectoryHost(tmp_path)
        bundle = host.load()
        Orchestrator().run(bundle)
        host.write(bundle)

        assert not (tmp_path / "a.gif").exists()
        assert _open((tmp_path / "a.webp").read_bytes()).size == (6, 6)
        assert (tmp_path / "style.css").read_text(encoding="utf-8") == "div{background:url(./a.webp)}"
