"""Stage 1 — Opt-Out Scan.

Finds raster assets that some text artifact references with the
``imgfmt=keep`` query marker.  Runs over the untouched bundle, before any
entry is renamed or removed, and only produces the keep set.
"""

from __future__ import annotations

import logging

from imgfmt.core.classifier import is_raster, is_rewritable
from imgfmt.core.references import find_opt_outs
from imgfmt.models.artifacts import Bundle, artifact_text
from imgfmt.models.pass_state import PassContext
from imgfmt.stages.base import BaseStage

logger = logging.getLogger(__name__)


class OptOutScanStage(BaseStage):
    """Stage 1: compute the keep set."""

    @property
    def stage_id(self) -> str:
        return "s1_opt_out_scan"

    @property
    def display_name(self) -> str:
        return "Opt-Out Scan"

    async def execute(self, context: PassContext, bundle: Bundle) -> frozenset[str]:
        candidates = [name for name in bundle if is_raster(name)]
        if not candidates:
            return frozenset()

        keep: set[str] = set()
        for name, artifact in bundle.items():
            if not is_rewritable(name, artifact):
                continue
            found = find_opt_outs(artifact_text(artifact), name, candidates)
            for target in sorted(found - keep):
                logger.info("Keeping %s as-is (opted out in %s)", target, name)
            keep |= found
        return frozenset(keep)
