"""Run manager - at most one background pipeline run per process."""

import threading
from typing import Any, Callable, Optional

from app.core.config import Settings
from app.core.logging_config import get_logger
from app.models.schemas import (
    CompositionResult,
    PipelineState,
    PipelineStep,
    ProgressEvent,
    RunRecord,
    RunStatusResponse,
    Script,
    StyleConfig,
    VoiceConfig,
)
from app.pipelines.run_full_pipeline import PipelineOrchestrator, ServiceContainer
from app.services.progress import QueueProgressChannel
from app.storage.repository import RunRepository
from app.utils.io_utils import RunPaths, create_run_output_dir, slugify

ServicesFactory = Callable[[Settings, Any], ServiceContainer]
CleanupCallback = Callable[[RunPaths, PipelineState], None]


class RunInProgressError(RuntimeError):
    """A run is already active."""


class RunManager:
    """
    Starts pipeline runs on a worker thread and exposes their state.

    Only one run may be active at a time. When a run ends in error or
    cancellation the optional ``cleanup`` callback receives its paths; the
    pipeline itself never deletes partial files.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        services_factory: Optional[ServicesFactory] = None,
        repository: Optional[RunRepository] = None,
        cleanup: Optional[CleanupCallback] = None,
    ):
        self.settings = settings
        self.logger = logger
        self.services_factory = services_factory or ServiceContainer.from_settings
        self.repository = repository or RunRepository(settings, logger)
        self.cleanup = cleanup

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._orchestrator: Optional[PipelineOrchestrator] = None
        self._channel: Optional[QueueProgressChannel] = None
        self._run_id: Optional[str] = None
        self._result: Optional[CompositionResult] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(
        self,
        script: Script,
        voice_config: Optional[VoiceConfig] = None,
        style_config: Optional[StyleConfig] = None,
    ) -> str:
        """
        Start a run in the background.

        Returns:
            The run ID

        Raises:
            RunInProgressError: Another run is still active
        """
        with self._lock:
            if self.is_running:
                raise RunInProgressError(f"Run {self._run_id} is still active")

            paths = create_run_output_dir(self.settings.output_dir, slugify(script.title))
            run_id = paths.run_dir.name
            logger = get_logger(__name__, run_id=run_id)

            channel = QueueProgressChannel(maxsize=self.settings.progress_queue_size)
            services = self.services_factory(self.settings, logger)
            orchestrator = PipelineOrchestrator(self.settings, logger, services, paths, channel=channel)

            self._run_id = run_id
            self._channel = channel
            self._orchestrator = orchestrator
            self._result = None
            self._thread = threading.Thread(
                target=self._execute,
                args=(orchestrator, paths, script, voice_config, style_config),
                name=f"pipeline-{run_id}",
                daemon=True,
            )
            self._thread.start()

        self.logger.info(f"Started run {run_id}")
        return run_id

    def status(self) -> RunStatusResponse:
        """State of the current (or most recent) run."""
        if self._orchestrator is None:
            return RunStatusResponse(state=PipelineState())
        return RunStatusResponse(run_id=self._run_id, state=self._orchestrator.state, result=self._result)

    def events(self, limit: Optional[int] = None) -> list[ProgressEvent]:
        """Pending progress events of the current run, oldest first."""
        if self._channel is None:
            return []
        return self._channel.drain(limit)

    def cancel(self) -> bool:
        """
        Cancel the active run.

        Returns:
            False when no run is active
        """
        if not self.is_running or self._orchestrator is None:
            return False
        self._orchestrator.cancel()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the active run finishes.

        Returns:
            True when no run is active anymore
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return not self.is_running

    def _execute(
        self,
        orchestrator: PipelineOrchestrator,
        paths: RunPaths,
        script: Script,
        voice_config: Optional[VoiceConfig],
        style_config: Optional[StyleConfig],
    ) -> None:
        try:
            self._result = orchestrator.run(script, voice_config, style_config)
        except Exception as e:
            # already recorded in the pipeline state
            orchestrator.logger.debug(f"Run ended with {type(e).__name__}")

        state = orchestrator.state
        if self.cleanup is not None and state.current_step in (PipelineStep.ERROR, PipelineStep.CANCELLED):
            try:
                self.cleanup(paths, state)
            except Exception as e:
                orchestrator.logger.error(f"Cleanup failed for {paths.run_dir}: {e}")

        self.repository.save_run(
            RunRecord(
                run_id=paths.run_dir.name,
                title=script.title,
                run_dir=str(paths.run_dir),
                state=state,
                result=self._result,
            )
        )
