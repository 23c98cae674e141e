"""Per-pass state: the context threaded through every stage and the final report."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from imgfmt.errors import RenameConflictError


class Dimensions(BaseModel):
    """Intrinsic pixel size of a raster asset."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)


class MutationKind(str, Enum):
    EMIT = "emit"
    OVERWRITE = "overwrite"
    REMOVE = "remove"


class BundleMutation(BaseModel):
    """One bundle edit decided by the rename resolver, applied later in a batch."""

    model_config = ConfigDict(frozen=True)

    kind: MutationKind
    name: str
    data: bytes | None = None


class PassContext(BaseModel):
    """Accumulators shared by the stages of one pass.

    ``keep_set`` is fixed once the opt-out scan finishes.  ``rename_map`` and
    ``dimensions`` only ever grow; a rename, once recorded, is frozen.
    """

    keep_set: frozenset[str] = frozenset()
    rename_map: dict[str, str] = Field(default_factory=dict)
    dimensions: dict[str, Dimensions] = Field(default_factory=dict)
    rewritten: list[str] = Field(default_factory=list)

    def record_rename(self, old_name: str, new_name: str) -> None:
        frozen = set(self.rename_map) | set(self.rename_map.values())
        if old_name in frozen or new_name in frozen:
            raise RenameConflictError(
                f"Rename {old_name} -> {new_name} touches a name already renamed in this pass"
            )
        self.rename_map[old_name] = new_name

    def record_dimensions(self, name: str, dims: Dimensions | None) -> None:
        if dims is not None:
            self.dimensions[name] = dims


class PassReport(BaseModel):
    """Summary of a finished pass, returned by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    rename_map: dict[str, str]
    keep_set: list[str]
    dimensions: dict[str, Dimensions]
    rewritten: list[str]
    stage_durations: dict[str, float]
