"""Merge pipelines for merge-repos."""

from .cleanup import CleanupStack
from .pipeline import MergePipeline, PipelineResult
from .staging_to_main import StagingToMainOrchestrator
from .sync_to_staging import SyncOrchestrator

__all__ = [
    "CleanupStack",
    "MergePipeline",
    "PipelineResult",
    "StagingToMainOrchestrator",
    "SyncOrchestrator",
]
