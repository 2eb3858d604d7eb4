"""Audio synthesis stage - batched narration plus first-pass captions."""

from typing import Any, Optional, Sequence

from app.core.config import Settings
from app.core.errors import InputError, NoAudioProduced, SynthesisFailed
from app.models.schemas import AudioArtifact, PipelineStep, Scene, SynthesisRequest, VoiceConfig
from app.services.progress import ProgressReporter
from app.services.subtitle_sync import build_cues, estimate_scene_durations, write_srt
from app.services.timing_allocator import allocate_for_texts
from app.services.tts_client import TTSClient
from app.utils.cancellation import CancellationToken
from app.utils.io_utils import RunPaths, file_exists

STEP = PipelineStep.AUDIO


class AudioSynthesisStage:
    """Turns every scene's text into a narration file."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        tts_client: TTSClient,
        reporter: ProgressReporter,
        paths: RunPaths,
        cancel_token: Optional[CancellationToken] = None,
    ):
        """
        Initialize the audio stage.

        Args:
            settings: Application settings
            logger: Logger instance
            tts_client: Synthesis adapter
            reporter: Progress reporter of the current run
            paths: Run directory layout
            cancel_token: Cancellation token of the current run
        """
        self.settings = settings
        self.logger = logger
        self.tts_client = tts_client
        self.reporter = reporter
        self.paths = paths
        self.cancel_token = cancel_token or CancellationToken()

    def synthesize(self, scenes: Sequence[Scene], voice_config: VoiceConfig) -> list[AudioArtifact]:
        """
        Synthesize narration for all scenes in one batched request.

        Returns:
            One artifact per file reported by the service, in scene order

        Raises:
            InputError: No scenes
            SynthesisFailed: The service reported failure
            NoAudioProduced: No reported file exists on disk
        """
        if not scenes:
            raise InputError("Cannot synthesize audio for an empty script")

        self.cancel_token.raise_if_cancelled()
        self.reporter.progress(STEP, 0)
        self.reporter.info(STEP, f"Synthesizing narration for {len(scenes)} scenes...")

        request = SynthesisRequest(
            scenes=list(scenes),
            voice_id=voice_config.voice_id,
            speed=voice_config.speed,
            engine=voice_config.engine,
            output_dir=str(self.paths.audio_dir),
        )
        result = self.tts_client.synthesize(request, on_progress=self._on_progress, cancel_token=self.cancel_token)

        if not result.ok:
            raise SynthesisFailed(result.error or "Audio synthesis failed")

        artifacts = []
        for descriptor in sorted(result.audio_files, key=lambda d: d.scene_index):
            if not descriptor.audio_url:
                self.reporter.warning(STEP, f"No audio path reported for {descriptor.file_name}")
                artifacts.append(AudioArtifact(scene_index=descriptor.scene_index, exists=False))
                continue

            exists = file_exists(descriptor.audio_url)
            if not exists:
                self.reporter.warning(STEP, f"Audio file missing: {descriptor.audio_url}")
            artifacts.append(
                AudioArtifact(scene_index=descriptor.scene_index, file_path=descriptor.audio_url, exists=exists)
            )

        usable = sum(1 for artifact in artifacts if artifact.exists)
        if usable == 0:
            raise NoAudioProduced("Synthesis finished but produced no usable audio files")

        self.reporter.progress(STEP, 100)
        self.reporter.success(STEP, f"Generated {usable}/{len(scenes)} audio files")

        self._write_estimated_captions(scenes)
        return artifacts

    def _on_progress(self, processed: int, total: int) -> None:
        if total > 0:
            self.reporter.progress(STEP, processed / total * 100, f"Synthesized {processed}/{total} scenes")

    def _write_estimated_captions(self, scenes: Sequence[Scene]) -> None:
        """First caption file from word-count estimates; replaced once real durations are known."""
        estimates = estimate_scene_durations(
            scenes,
            per_word_ms=self.settings.estimate_ms_per_word,
            min_ms=self.settings.estimate_min_scene_ms,
        )
        total_ms = sum(estimates)
        if total_ms == 0:
            self.logger.warning("No scene text to caption, skipping first-pass captions")
            return

        durations = allocate_for_texts([scene.text for scene in scenes], total_ms, self.settings.min_caption_ms)
        path = write_srt(build_cues(scenes, durations), self.paths.subtitle_path)
        self.logger.debug(f"First-pass captions written to {path}")
