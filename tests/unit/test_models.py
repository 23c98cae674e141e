"""Unit tests for bundle, artifact and pass-state models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from imgfmt.errors import BundleError, EncodeError, ImgfmtError, RenameConflictError
from imgfmt.models.artifacts import Asset, Bundle, Chunk, artifact_text
from imgfmt.models.pass_state import Dimensions, PassContext, PassReport


# ---------------------------------------------------------------------------
# Test: Bundle
# ---------------------------------------------------------------------------


class TestBundle:
    """Names are unique and insertion order is iteration order."""

    def test_iteration_order(self):
        bundle = Bundle({"b": Asset(source=b""), "a": Asset(source=b"")})
        bundle.emit("c", Asset(source=b""))
        assert list(bundle) == ["b", "a", "c"]
        assert len(bundle) == 3

    def test_emit_duplicate_rejected(self):
        bundle = Bundle({"a": Asset(source=b"")})
        with pytest.raises(BundleError, match="already exists"):
            bundle.emit("a", Asset(source=b"x"))

    def test_remove(self):
        bundle = Bundle({"a": Asset(source=b"1")})
        assert bundle.remove("a").source == b"1"
        assert "a" not in bundle
        assert bundle.get("a") is None

    def test_remove_missing_rejected(self):
        with pytest.raises(BundleError, match="not found"):
            Bundle().remove("a")

    def test_items_is_snapshot(self):
        bundle = Bundle({"a": Asset(source=b""), "b": Asset(source=b"")})
        for name, _ in bundle.items():
            bundle.remove(name)
        assert len(bundle) == 0


class TestArtifacts:
    def test_asset_text_round_trip(self):
        asset = Asset(source=b"caf\xc3\xa9 \xff")
        asset.set_text(asset.text + "!")
        assert asset.source == b"caf\xc3\xa9 \xff!"

    def test_artifact_text(self):
        assert artifact_text(Chunk(code="x")) == "x"
        assert artifact_text(Asset(source=b"y")) == "y"

    def test_kinds(self):
        assert Asset(source=b"").kind == "asset"
        assert Chunk(code="").kind == "chunk"


# ---------------------------------------------------------------------------
# Test: Pass state
# ---------------------------------------------------------------------------


class TestPassContext:
    """A recorded rename is frozen for the rest of the pass."""

    def test_record_rename(self):
        context = PassContext()
        context.record_rename("a.png", "a.webp")
        assert context.rename_map == {"a.png": "a.webp"}

    def test_second_rename_of_source_rejected(self):
        context = PassContext()
        context.record_rename("a.png", "a.webp")
        with pytest.raises(RenameConflictError):
            context.record_rename("a.png", "a-1.webp")

    def test_rename_onto_renamed_target_rejected(self):
        context = PassContext()
        context.record_rename("a.png", "a.webp")
        with pytest.raises(RenameConflictError):
            context.record_rename("a.webp", "a-1234.webp")

    def test_record_dimensions_ignores_none(self):
        context = PassContext()
        context.record_dimensions("a.webp", None)
        context.record_dimensions("b.webp", Dimensions(width=1, height=2))
        assert list(context.dimensions) == ["b.webp"]


class TestDimensions:
    def test_positive_only(self):
        with pytest.raises(ValidationError):
            Dimensions(width=0, height=10)

    def test_frozen(self):
        dims = Dimensions(width=1, height=1)
        with pytest.raises(ValidationError):
            dims.width = 2


class TestPassReport:
    def test_json_round_trip(self):
        report = PassReport(
            rename_map={"a.png": "a.webp"},
            keep_set=["k.png"],
            dimensions={"a.webp": Dimensions(width=3, height=4)},
            rewritten=["index.html"],
            stage_durations={"s1_opt_out_scan": 0.1},
        )
        assert PassReport.model_validate_json(report.model_dump_json()) == report


class TestErrors:
    def test_hierarchy(self):
        for cls in (BundleError, EncodeError, RenameConflictError):
            assert issubclass(cls, ImgfmtError)

    def test_encode_error_message(self):
        err = EncodeError("img/a.png", "boom")
        assert str(err) == "Failed to encode img/a.png: boom"
        assert err.name == "img/a.png"
