"""BaseAgent ABC and AgentStatus constants for NextSignal.

Every fusion-phase agent inherits from BaseAgent and implements run(context).
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from nextsignal.models.pipeline import FusionContext

logger = logging.getLogger(__name__)


class AgentStatus:
    """Status codes recorded in the fusion phase log."""

    OK = "OK"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class BaseAgent(ABC):
    """Abstract base class for NextSignal agents.

    Agents hold their collaborators (LLM client, store, config) but no run
    data: everything a run produces flows through FusionContext, so one agent
    instance can serve concurrent runs.
    """

    name: str = "BaseAgent"
    version: str = "1.0.0"

    @abstractmethod
    def run(self, context: "FusionContext") -> Any:
        """Execute the agent for one fusion run.

        Args:
            context: Shared fusion context with configuration and upstream results.

        Returns:
            Agent-specific result; the orchestrator stores it on the context.
        """

    def _run_timed(self, context: "FusionContext") -> Any:
        """Execute run() and log elapsed time."""
        start = time.monotonic()
        try:
            result = self.run(context)
        except Exception as exc:
            logger.error(
                "Agent %s failed after %.2fs: %s",
                self.name,
                time.monotonic() - start,
                exc,
                exc_info=True,
            )
            raise
        logger.info("Agent %s completed in %.2fs", self.name, time.monotonic() - start)
        return result
