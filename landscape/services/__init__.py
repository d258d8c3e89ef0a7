from .dispatcher import TaskDispatcher
from .executor import COMPETITIVE_ANALYSIS, JobExecutor, competitive_analysis_handler
from .research import ResearchEngine

__all__ = [
    "TaskDispatcher",
    "JobExecutor",
    "ResearchEngine",
    "COMPETITIVE_ANALYSIS",
    "competitive_analysis_handler",
]
