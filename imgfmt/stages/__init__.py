"""Pass stages, in execution order."""

from imgfmt.stages.base import BaseStage, StageExecutionError
from imgfmt.stages.s1_opt_out_scan import OptOutScanStage
from imgfmt.stages.s2_rename_resolve import RenameResolveStage
from imgfmt.stages.s3_reference_rewrite import ReferenceRewriteStage
from imgfmt.stages.s4_markup_postprocess import MarkupPostprocessStage

__all__ = [
    "BaseStage",
    "StageExecutionError",
    "OptOutScanStage",
    "RenameResolveStage",
    "ReferenceRewriteStage",
    "MarkupPostprocessStage",
]
