"""NextSignal — citizen report fusion and event synthesis.

Public API surface:
    - PipelineConfig: Runtime configuration
    - FusionOrchestrator: One fusion pass over a store
    - run_fusion: Convenience entry point for a single fusion pass
    - Handlers: Callable boundaries (media, fusion, predictions, sentiment)
"""

__version__ = "1.0.0"
__author__ = "NextSignal Contributors"

from config.settings import PipelineConfig
from nextsignal.handlers import Handlers
from nextsignal.pipeline import FusionOrchestrator, run_fusion

__all__ = [
    "__version__",
    "PipelineConfig",
    "FusionOrchestrator",
    "Handlers",
    "run_fusion",
]
