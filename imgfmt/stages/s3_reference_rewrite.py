"""Stage 3 — Reference Rewrite.

Rewrites every text-like asset and code chunk so references to renamed
rasters point at their new names (same spelling, same suffix) and opt-out
markers on kept rasters are stripped.  Chunks that carry a source map have
the map composed with the rewrite's edit map; untouched chunks keep their
map object as-is.
"""

from __future__ import annotations

import logging

from imgfmt.core.classifier import has_source_map, is_rewritable
from imgfmt.core.references import apply_edits, reference_edits
from imgfmt.core.sourcemap import EditMap, compose
from imgfmt.models.artifacts import Asset, Bundle, Chunk
from imgfmt.models.pass_state import PassContext
from imgfmt.stages.base import BaseStage

logger = logging.getLogger(__name__)


class ReferenceRewriteStage(BaseStage):
    """Stage 3: propagate renames into every text artifact."""

    @property
    def stage_id(self) -> str:
        return "s3_reference_rewrite"

    @property
    def display_name(self) -> str:
        return "Reference Rewrite"

    async def execute(self, context: PassContext, bundle: Bundle) -> list[str]:
        if not context.rename_map and not context.keep_set:
            return []

        rewritten: list[str] = []
        for name, artifact in bundle.items():
            if not is_rewritable(name, artifact):
                continue
            if isinstance(artifact, Chunk):
                changed = self._rewrite_chunk(name, artifact, context)
            else:
                changed = self._rewrite_asset(name, artifact, context)
            if changed:
                rewritten.append(name)
        logger.info("Rewrote references in %d artifact(s)", len(rewritten))
        return rewritten

    @staticmethod
    def _rewrite_asset(name: str, asset: Asset, context: PassContext) -> bool:
        text = asset.text
        edits = reference_edits(text, name, context.rename_map, context.keep_set)
        if not edits:
            return False
        asset.set_text(apply_edits(text, edits))
        logger.debug("%s: %d reference(s) rewritten", name, len(edits))
        return True

    @staticmethod
    def _rewrite_chunk(name: str, chunk: Chunk, context: PassContext) -> bool:
        edits = reference_edits(chunk.code, name, context.rename_map, context.keep_set)
        if not edits:
            return False
        if not has_source_map(chunk):
            chunk.code = apply_edits(chunk.code, edits)
        else:
            edit_map = EditMap(chunk.code, edits)
            chunk.source_map = compose(chunk.source_map, edit_map)
            chunk.code = edit_map.text
        logger.debug("%s: %d reference(s) rewritten", name, len(edits))
        return True
