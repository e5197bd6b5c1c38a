"""
FeedAlert Scheduler Module
==========================

Refresh cycle orchestration and the interval scheduler.
"""

from .refresh_scheduler import (
    CycleResult,
    RefreshPipeline,
    RefreshScheduler,
    SourceOutcome,
    build_pipeline,
)

__all__ = [
    "CycleResult",
    "RefreshPipeline",
    "RefreshScheduler",
    "SourceOutcome",
    "build_pipeline",
]
