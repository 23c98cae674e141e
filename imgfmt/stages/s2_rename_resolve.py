"""Stage 2 — Rename Resolve.

Decides, for every raster asset, whether it is kept, passed through,
re-encoded in place or converted to the target format, and what its final
name is.  Codec work for all candidates is started up front and runs
through the shared ``EncodeScheduler``; naming decisions are then taken
one candidate at a time, in bundle order, against a running view of which
names are occupied.

Nothing here touches the bundle.  The stage returns the list of
``BundleMutation``s; the orchestrator applies them as one batch.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from enum import Enum

from pydantic import BaseModel

from imgfmt.core.classifier import extension_of, is_raster, swap_extension
from imgfmt.core.codec import EncodeScheduler
from imgfmt.core.hasher import content_hash, hashed_name
from imgfmt.models.artifacts import Asset, Bundle
from imgfmt.models.config import PassConfig
from imgfmt.models.pass_state import (
    BundleMutation,
    Dimensions,
    MutationKind,
    PassContext,
)
from imgfmt.stages.base import BaseStage

logger = logging.getLogger(__name__)


class Action(str, Enum):
    KEEP = "keep"
    PASSTHROUGH = "passthrough"
    ENCODE = "encode"


class _Candidate(BaseModel):
    name: str
    source: bytes
    action: Action
    encoded: bytes | None = None
    dims: Dimensions | None = None

    @property
    def payload(self) -> bytes:
        return self.encoded if self.encoded is not None else self.source


class _Plan:
    """Running view of the bundle while mutations are being decided."""

    def __init__(self, bundle: Bundle, context: PassContext) -> None:
        self.bundle = bundle
        self.context = context
        self.occupied: set[str] = set(bundle.names())
        self.mutations: list[BundleMutation] = []
        # Names written by this pass: rename targets and overwritten occupants.
        self.claimed: set[str] = set()

    def can_overwrite(self, name: str) -> bool:
        """Only raster bytes may be replaced; chunks are never overwritten."""
        return name not in self.bundle or isinstance(self.bundle[name], Asset)

    def overwrite(self, name: str, data: bytes) -> None:
        self.mutations.append(BundleMutation(kind=MutationKind.OVERWRITE, name=name, data=data))
        self.claimed.add(name)

    def move(self, old: str, new: str, data: bytes, dims: Dimensions | None) -> None:
        self.mutations.append(BundleMutation(kind=MutationKind.EMIT, name=new, data=data))
        self.mutations.append(BundleMutation(kind=MutationKind.REMOVE, name=old))
        self.occupied.add(new)
        self.occupied.discard(old)
        self.claimed.add(new)
        self.context.record_rename(old, new)
        self.context.record_dimensions(new, dims)


class RenameResolveStage(BaseStage):
    """Stage 2: decide final names and bytes for every raster asset."""

    def __init__(self, config: PassConfig, scheduler: EncodeScheduler) -> None:
        super().__init__(config)
        self.scheduler = scheduler

    @property
    def stage_id(self) -> str:
        return "s2_rename_resolve"

    @property
    def display_name(self) -> str:
        return "Rename Resolve"

    async def execute(self, context: PassContext, bundle: Bundle) -> list[BundleMutation]:
        candidates = [
            _Candidate(name=name, source=artifact.source, action=self._action_for(name, context))
            for name, artifact in bundle.items()
            if isinstance(artifact, Asset) and is_raster(name)
        ]
        await self._prepare_all(candidates)

        plan = _Plan(bundle, context)
        for candidate in candidates:
            self._resolve(candidate, plan)
        return plan.mutations

    # ------------------------------------------------------------------
    # Classification and codec work
    # ------------------------------------------------------------------

    def _is_target(self, name: str) -> bool:
        return extension_of(name) == self.config.format.extension

    def _action_for(self, name: str, context: PassContext) -> Action:
        if name in context.keep_set:
            return Action.KEEP
        if self._is_target(name) and not self.config.reencode:
            return Action.PASSTHROUGH
        return Action.ENCODE

    async def _prepare_all(self, candidates: list[_Candidate]) -> None:
        """Run codec work for every candidate; the first failure cancels the rest."""
        tasks = [asyncio.ensure_future(self._prepare(c)) for c in candidates]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _prepare(self, candidate: _Candidate) -> None:
        if candidate.action is not Action.ENCODE:
            candidate.dims = await self.scheduler.probe_dimensions(candidate.source, candidate.name)
            return
        candidate.encoded = await self.scheduler.encode(
            candidate.source,
            self.config.format,
            self.config.codec_options(),
            candidate.name,
        )
        candidate.dims = await self.scheduler.probe_dimensions(candidate.encoded, candidate.name)

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    def _hashed(self, name: str, payload: bytes) -> str | None:
        """Content-hashed form of *name*, or ``None`` if it already carries that hash."""
        digest = content_hash(payload, self.config.hash_length)
        stem = posixpath.splitext(name)[0]
        if stem.endswith(f"-{digest}"):
            return None
        return hashed_name(name, digest)

    def _resolve(self, c: _Candidate, plan: _Plan) -> None:
        context = plan.context
        if c.name in plan.claimed:
            logger.info("%s already holds output of this pass, leaving it", c.name)
            return

        if c.action is Action.KEEP:
            context.record_dimensions(c.name, c.dims)
            return

        if c.action is Action.PASSTHROUGH or self._is_target(c.name):
            self._resolve_same_extension(c, plan)
            return

        final = swap_extension(c.name, self.config.format.extension)
        if self.config.hash_in_name:
            final = hashed_name(final, content_hash(c.payload, self.config.hash_length))

        if final in plan.occupied:
            if final in plan.claimed:
                logger.warning(
                    "Not converting %s: %s was already produced by this pass", c.name, final
                )
                return
            if final in context.keep_set or not plan.can_overwrite(final):
                logger.warning(
                    "Not converting %s: %s is already present and cannot be replaced",
                    c.name,
                    final,
                )
                return
            # Existing output wins over a rename; the source stays under its old name.
            logger.warning("%s already exists, overwriting it with output of %s", final, c.name)
            plan.overwrite(final, c.payload)
            context.record_dimensions(final, c.dims)
            return

        logger.info("Converted %s -> %s", c.name, final)
        plan.move(c.name, final, c.payload, c.dims)

    def _resolve_same_extension(self, c: _Candidate, plan: _Plan) -> None:
        """Passthrough, or re-encode in place, optionally moving to a hashed name."""
        context = plan.context
        if self.config.hash_in_name:
            hashed = self._hashed(c.name, c.payload)
            if hashed is None:
                logger.info("%s is already content-hashed, keeping its name", c.name)
            elif hashed in plan.occupied:
                logger.warning("Not renaming %s: %s is already present", c.name, hashed)
            else:
                logger.info("Renamed %s -> %s", c.name, hashed)
                plan.move(c.name, hashed, c.payload, c.dims)
                return

        # Re-encoded bytes replace the original even when the name stays.
        if c.action is Action.ENCODE:
            logger.info("Re-encoded %s in place", c.name)
            plan.overwrite(c.name, c.payload)
        context.record_dimensions(c.name, c.dims)
