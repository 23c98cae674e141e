"""Abstract base stage with an enforced lifecycle.

Every concrete stage inherits from BaseStage and implements only ``execute()``.
The ``run_stage()`` wrapper is **not overridable**: it times and logs
the stage and converts any failure into ``StageExecutionError`` chained to
the original exception, so a failing stage always aborts the pass.
"""

from __future__ import annotations

import abc
import logging
import time
from typing import Any, final

from imgfmt.models.artifacts import Bundle
from imgfmt.models.config import PassConfig
from imgfmt.models.pass_state import PassContext

logger = logging.getLogger(__name__)


class StageExecutionError(RuntimeError):
    """Raised when a stage's execute() method fails."""

    def __init__(self, stage_id: str, message: str) -> None:
        super().__init__(message)
        self.stage_id = stage_id


class BaseStage(abc.ABC):
    """Abstract base for all pass stages.

    Subclasses **must** implement:
        * ``stage_id``   — unique identifier (e.g. ``"s1_opt_out_scan"``).
        * ``display_name`` — human-readable name used in logs and reports.
        * ``execute(context, bundle)`` — the stage's core logic.

    Subclasses **must not** override ``run_stage()``.
    """

    def __init__(self, config: PassConfig) -> None:
        self.config = config
        self.last_duration: float = 0.0

    # ------------------------------------------------------------------
    # Abstract interface: subclasses implement these
    # ------------------------------------------------------------------

    @property
    @abc.abstractmethod
    def stage_id(self) -> str:
        """Unique stage identifier."""
        ...

    @property
    @abc.abstractmethod
    def display_name(self) -> str:
        """Human-readable display name."""
        ...

    @abc.abstractmethod
    async def execute(self, context: PassContext, bundle: Bundle) -> Any:
        """Execute the stage's core logic.

        Parameters
        ----------
        context:
            The pass context.  Stages only add to it; nothing earlier
            stages recorded is ever rewritten.
        bundle:
            The bundle being processed.  Only stages that own a mutation
            step may change it.
        """
        ...

    # ------------------------------------------------------------------
    # Lifecycle (not overridable)
    # ------------------------------------------------------------------

    @final
    async def run_stage(self, context: PassContext, bundle: Bundle) -> Any:
        """Run ``execute()`` with logging, timing and error wrapping.  **Do not override.**"""
        logger.info("%s [%s] started", self.display_name, self.stage_id)
        started = time.perf_counter()
        try:
            result = await self.execute(context, bundle)
        except Exception as exc:
            logger.error(
                "%s [%s] execution failed: %s",
                self.display_name,
                self.stage_id,
                exc,
            )
            raise StageExecutionError(
                self.stage_id, f"Stage {self.stage_id} failed: {exc}"
            ) from exc
        self.last_duration = time.perf_counter() - started
        logger.info(
            "%s [%s] finished in %.3fs",
            self.display_name,
            self.stage_id,
            self.last_duration,
        )
        return result

    def __repr__(self) -> str:
        return f"<{type(self).__name__} stage_id={self.stage_id!r}>"
