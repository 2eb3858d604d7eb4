"""Full pipeline orchestrator - script → narration → images → video."""

import argparse
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from app.core.config import Settings, settings
from app.core.errors import InputError, PipelineCancelled, PipelineError
from app.core.logging_config import get_logger, setup_logging
from app.models.schemas import (
    CompositionResult,
    PipelineState,
    PipelineStep,
    RunRecord,
    Script,
    StyleConfig,
    VoiceConfig,
)
from app.services.audio_stage import AudioSynthesisStage
from app.services.composition_stage import CompositionStage
from app.services.image_client import ImageGenClient
from app.services.image_stage import ImageSynthesisStage
from app.services.media_probe import MediaProbe
from app.services.media_store import MediaStore
from app.services.progress import ProgressChannel, ProgressReporter
from app.services.tts_client import TTSClient
from app.services.video_compositor import VideoCompositor
from app.storage.repository import RunRepository
from app.utils.cancellation import CancellationToken
from app.utils.error_handler import format_error_message, get_fallback_suggestion, to_error_info
from app.utils.io_utils import RunPaths, create_run_output_dir, slugify
from app.utils.retry_policy import RetryPolicy

STEP_SERVICES = {
    PipelineStep.AUDIO: "TTS",
    PipelineStep.IMAGES: "Image Generation",
    PipelineStep.VIDEO: "Composition",
}


@dataclass
class ServiceContainer:
    """External adapters used by one pipeline run."""

    tts_client: Any
    image_client: Any
    media_store: Any
    probe: Any
    compositor: Any

    @classmethod
    def from_settings(cls, settings: Settings, logger: Any, stub_dir: Optional[Path] = None) -> "ServiceContainer":
        """Build the production adapters, sharing one retry policy."""
        retry_policy = RetryPolicy.from_settings(settings, logger)
        return cls(
            tts_client=TTSClient(settings, logger, retry_policy),
            image_client=ImageGenClient(settings, logger, stub_dir=stub_dir),
            media_store=MediaStore(settings, logger, retry_policy),
            probe=MediaProbe(settings, logger),
            compositor=VideoCompositor(settings, logger),
        )


class PipelineOrchestrator:
    """
    Drives the audio, image and composition stages of one run in sequence.

    State machine: idle → script → audio → images → video → completed, with
    a side transition to error from any non-terminal step and to cancelled
    when the cancellation token fires. Stages are never retried as a whole.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        services: ServiceContainer,
        paths: RunPaths,
        channel: Optional[ProgressChannel] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            settings: Application settings
            logger: Logger instance (bound to the run ID)
            services: External adapters
            paths: Directory layout of this run
            channel: Progress channel observers read from
            cancel_token: Token shared with every stage
        """
        self.settings = settings
        self.logger = logger
        self.services = services
        self.paths = paths
        self.cancel_token = cancel_token or CancellationToken()
        self.reporter = ProgressReporter(PipelineState(), channel, logger)
        self._step = PipelineStep.IDLE

    @property
    def state(self) -> PipelineState:
        """Deep copy of the current pipeline state."""
        return self.reporter.snapshot()

    def cancel(self) -> None:
        """Request cancellation; the active stage stops at its next check."""
        self.logger.warning("Cancellation requested")
        self.cancel_token.cancel()

    def run(
        self,
        script: Script,
        voice_config: Optional[VoiceConfig] = None,
        style_config: Optional[StyleConfig] = None,
    ) -> CompositionResult:
        """
        Run the whole pipeline for ``script``.

        Returns:
            The composition result

        Raises:
            PipelineError: The failure that halted the run (also recorded in ``state.error``)
        """
        voice_config = voice_config or VoiceConfig()
        style_config = style_config or StyleConfig(
            style=self.settings.image_style,
            width=self.settings.image_width,
            height=self.settings.image_height,
            aspect_ratio=self.settings.image_aspect_ratio,
        )

        try:
            self._enter(PipelineStep.SCRIPT)
            scenes = script.scenes
            if not scenes:
                raise InputError("Script has no scenes")
            if not any(scene.text.strip() for scene in scenes):
                raise InputError("Every scene of the script is empty")
            self.reporter.progress(PipelineStep.SCRIPT, 100)
            self.reporter.info(PipelineStep.SCRIPT, f"Script '{script.title}' with {len(scenes)} scenes")

            self._enter(PipelineStep.AUDIO)
            audio_stage = AudioSynthesisStage(
                self.settings, self.logger, self.services.tts_client, self.reporter, self.paths, self.cancel_token
            )
            audio_artifacts = audio_stage.synthesize(scenes, voice_config)

            self._enter(PipelineStep.IMAGES)
            image_stage = ImageSynthesisStage(
                self.settings,
                self.logger,
                self.services.image_client,
                self.services.media_store,
                self.reporter,
                self.paths,
                self.cancel_token,
            )
            image_artifacts = image_stage.generate_images(scenes, style_config)

            self._enter(PipelineStep.VIDEO)
            composition_stage = CompositionStage(
                self.settings,
                self.logger,
                self.services.probe,
                self.services.compositor,
                self.reporter,
                self.paths,
                self.cancel_token,
            )
            result = composition_stage.compose(scenes, audio_artifacts, image_artifacts)

            self._enter(PipelineStep.COMPLETED)
            self.reporter.success(PipelineStep.COMPLETED, f"Pipeline completed: {result.video_path}")
            return result

        except PipelineCancelled as e:
            step = self._step
            self.reporter.fail(to_error_info(e, step))
            self.reporter.warning(step, "Pipeline cancelled")
            self._enter(PipelineStep.CANCELLED)
            raise

        except Exception as e:
            step = self._step
            self.reporter.error(
                step,
                format_error_message(
                    f"Running {step.value} step",
                    e,
                    suggestion=get_fallback_suggestion(STEP_SERVICES.get(step, ""), e),
                ),
            )
            self.reporter.fail(to_error_info(e, step))
            self._enter(PipelineStep.ERROR)
            raise

    def _enter(self, step: PipelineStep) -> None:
        self._step = step
        self.reporter.transition(step)
        if not step.is_terminal:
            self.logger.info(f"Step: {step.value}")


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Turn a narration script into a captioned video",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_full_pipeline.py --script examples/script.json
  python run_full_pipeline.py --script script.json --voice-id alloy --speed 1.1 --style watercolor
        """,
    )
    parser.add_argument(
        "--script",
        type=str,
        required=True,
        help="Path to a script JSON file ({\"title\": ..., \"scenes\": [...]})",
    )
    parser.add_argument(
        "--voice-id",
        type=str,
        default=None,
        help="Voice ID for the TTS provider (default: provider default)",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Speaking rate multiplier (default: 1.0)",
    )
    parser.add_argument(
        "--style",
        type=str,
        default=None,
        help=f"Image style keyword (default: {settings.image_style})",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help=f"Base directory for run outputs (default: {settings.output_dir})",
    )

    args = parser.parse_args()

    setup_logging(log_level=settings.log_level, log_file=settings.log_file)
    logger = get_logger(__name__)

    try:
        script = Script.load(args.script)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load script {args.script}: {e}")
        return 1

    paths = create_run_output_dir(args.output_dir or settings.output_dir, slugify(script.title))
    run_id = paths.run_dir.name
    logger = get_logger(__name__, run_id=run_id)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} - pipeline run {run_id}")
    logger.info("=" * 60)
    logger.info(f"Script: {args.script} ({len(script.scenes)} scenes)")
    logger.info(f"Output: {paths.run_dir}")

    voice_config = VoiceConfig(voice_id=args.voice_id, speed=args.speed)
    style_config = StyleConfig(
        style=args.style or settings.image_style,
        width=settings.image_width,
        height=settings.image_height,
        aspect_ratio=settings.image_aspect_ratio,
    )

    orchestrator = None
    result = None
    try:
        services = ServiceContainer.from_settings(settings, logger, stub_dir=tempfile.mkdtemp(prefix="svf_stub_"))
        orchestrator = PipelineOrchestrator(settings, logger, services, paths)
        result = orchestrator.run(script, voice_config, style_config)

        logger.info("=" * 60)
        logger.info("PIPELINE COMPLETE!")
        logger.info("=" * 60)
        logger.info(f"Video: {result.video_path}")
        logger.info(f"Duration: {result.duration_ms / 1000:.2f}s")
        logger.info(f"Size: {result.size_bytes} bytes")
        logger.info(f"Captions: {result.subtitle_path}")
        return 0

    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user")
        return 1
    except PipelineError as e:
        logger.error(f"Pipeline failed ({e.reason}): {e.detail}")
        return 1
    except Exception as e:
        logger.error(f"Pipeline failed: {e}")
        return 1
    finally:
        if orchestrator is not None:
            repository = RunRepository(settings, logger)
            repository.save_run(
                RunRecord(
                    run_id=run_id,
                    title=script.title,
                    run_dir=str(paths.run_dir),
                    state=orchestrator.state,
                    result=result,
                )
            )


if __name__ == "__main__":
    sys.exit(main())
