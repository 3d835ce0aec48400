"""NextSignal agents package.

All agents inherit from BaseAgent. Fusion-phase agents operate on
FusionContext; agents do not import from each other.
"""

from nextsignal.agents.base import AgentStatus, BaseAgent
from nextsignal.agents.grouping_agent import GroupingAgent
from nextsignal.agents.media_agent import MediaAnalysisAgent
from nextsignal.agents.prediction_agent import PredictionAgent
from nextsignal.agents.sentiment_agent import SentimentAgent
from nextsignal.agents.synthesis_agent import SynthesisAgent

__all__ = [
    "BaseAgent",
    "AgentStatus",
    "GroupingAgent",
    "MediaAnalysisAgent",
    "PredictionAgent",
    "SentimentAgent",
    "SynthesisAgent",
]
