"""Stage 4 — Markup Postprocess.

Corrects ``type`` on ``<source srcset>`` elements and writes intrinsic
``width``/``height`` on ``<img>`` elements.  Runs last: dimension-map keys
are final names and ``src`` values have already been rewritten to match.
"""

from __future__ import annotations

import logging

from imgfmt.core.classifier import is_markup
from imgfmt.core.markup import correct_source_types, inject_intrinsic_sizes
from imgfmt.models.artifacts import Asset, Bundle
from imgfmt.models.pass_state import PassContext
from imgfmt.stages.base import BaseStage

logger = logging.getLogger(__name__)


class MarkupPostprocessStage(BaseStage):
    """Stage 4: fix media types and intrinsic sizes in markup."""

    @property
    def stage_id(self) -> str:
        return "s4_markup_postprocess"

    @property
    def display_name(self) -> str:
        return "Markup Postprocess"

    async def execute(self, context: PassContext, bundle: Bundle) -> list[str]:
        updated: list[str] = []
        for name, artifact in bundle.items():
            if not isinstance(artifact, Asset) or not is_markup(name):
                continue
            html = artifact.text
            new_html = correct_source_types(html)
            new_html = inject_intrinsic_sizes(
                new_html, context.dimensions, self.config.html_size_mode
            )
            if new_html != html:
                artifact.set_text(new_html)
                updated.append(name)
                logger.debug("%s: markup updated", name)
        return updated
