"""Pass orchestrator — the post-pass hook a host calls once per bundle.

The Orchestrator wires the four stages together around one ``PassContext``
and one ``EncodeScheduler``:

    opt-out scan -> rename resolve -> (apply mutations) -> reference rewrite
        -> markup postprocess

Each stage fully completes before the next one reads what it produced.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Iterable

from imgfmt.core.codec import EncodeScheduler, ImageCodec, PillowCodec
from imgfmt.errors import BundleError
from imgfmt.models.artifacts import Asset, Bundle
from imgfmt.models.config import PassConfig
from imgfmt.models.pass_state import (
    BundleMutation,
    MutationKind,
    PassContext,
    PassReport,
)
from imgfmt.stages import (
    MarkupPostprocessStage,
    OptOutScanStage,
    ReferenceRewriteStage,
    RenameResolveStage,
)

logger = logging.getLogger(__name__)


def apply_mutations(bundle: Bundle, mutations: Iterable[BundleMutation]) -> None:
    """Apply a batch of mutations in order."""
    for mutation in mutations:
        if mutation.kind is MutationKind.EMIT:
            bundle.emit(mutation.name, Asset(source=mutation.data or b""))
        elif mutation.kind is MutationKind.OVERWRITE:
            artifact = bundle[mutation.name]
            if not isinstance(artifact, Asset):
                raise BundleError(f"Cannot overwrite bytes of chunk {mutation.name}")
            artifact.source = mutation.data or b""
        else:
            bundle.remove(mutation.name)


class Orchestrator:
    """Runs the image-format pass over a bundle.

    Parameters
    ----------
    config:
        Pass configuration.  Uses defaults if not provided.
    codec:
        Codec backend.  Defaults to ``PillowCodec`` with
        ``config.codec_concurrency`` encoder threads.
    """

    def __init__(
        self,
        config: PassConfig | None = None,
        *,
        codec: ImageCodec | None = None,
    ) -> None:
        self.config = config or PassConfig()
        self.codec = codec or PillowCodec(threads=self.config.codec_concurrency)
        self._processed: weakref.WeakSet[Bundle] = weakref.WeakSet()
        self.scheduler: EncodeScheduler | None = None

    def run(self, bundle: Bundle) -> PassReport:
        """Run the pass to completion on a fresh event loop."""
        return asyncio.run(self.run_async(bundle))

    async def run_async(self, bundle: Bundle) -> PassReport:
        """Run the pass inside the current event loop.

        Any stage failure propagates as ``StageExecutionError``; the bundle
        is then left partially mutated and must not be published.
        """
        if bundle in self._processed:
            raise BundleError("This bundle has already been processed by this orchestrator")
        self._processed.add(bundle)

        self.scheduler = EncodeScheduler(self.codec, self.config.max_concurrent)
        context = PassContext()
        durations: dict[str, float] = {}

        scan = OptOutScanStage(self.config)
        context.keep_set = await scan.run_stage(context, bundle)
        durations[scan.stage_id] = scan.last_duration

        resolve = RenameResolveStage(self.config, self.scheduler)
        mutations = await resolve.run_stage(context, bundle)
        durations[resolve.stage_id] = resolve.last_duration
        apply_mutations(bundle, mutations)

        rewrite = ReferenceRewriteStage(self.config)
        context.rewritten.extend(await rewrite.run_stage(context, bundle))
        durations[rewrite.stage_id] = rewrite.last_duration

        markup = MarkupPostprocessStage(self.config)
        for name in await markup.run_stage(context, bundle):
            if name not in context.rewritten:
                context.rewritten.append(name)
        durations[markup.stage_id] = markup.last_duration

        logger.info(
            "Pass complete: %d renamed, %d kept, %d artifact(s) rewritten",
            len(context.rename_map),
            len(context.keep_set),
            len(context.rewritten),
        )
        return PassReport(
            rename_map=dict(context.rename_map),
            keep_set=sorted(context.keep_set),
            dimensions=dict(context.dimensions),
            rewritten=list(context.rewritten),
            stage_durations=durations,
        )
