"""Pipeline orchestration for the Script Video Factory."""

from app.pipelines.run_full_pipeline import PipelineOrchestrator, ServiceContainer, main
from app.pipelines.run_manager import RunInProgressError, RunManager

__all__ = ["PipelineOrchestrator", "ServiceContainer", "RunManager", "RunInProgressError", "main"]
