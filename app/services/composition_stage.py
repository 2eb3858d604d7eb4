"""Composition stage - measure real audio, re-time captions, render the video."""

from pathlib import Path
from typing import Any, Optional, Sequence

from app.core.config import Settings
from app.core.errors import CompositionFailed, NoUsableAudio, NoUsableImages
from app.models.schemas import (
    AudioArtifact,
    CompositionResult,
    CompositorOptions,
    CompositorRequest,
    ImageArtifact,
    PipelineStep,
    Scene,
)
from app.services.media_probe import MediaProbe
from app.services.progress import ProgressReporter
from app.services.subtitle_sync import build_cues, build_timemap, write_srt, write_timemap
from app.services.timing_allocator import allocate_for_texts, is_floor_feasible, to_scene_durations
from app.services.video_compositor import VideoCompositor
from app.utils.cancellation import CancellationToken
from app.utils.io_utils import RunPaths, file_exists

STEP = PipelineStep.VIDEO


class CompositionStage:
    """Aligns scenes to the narration and hands everything to the compositor."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        probe: MediaProbe,
        compositor: VideoCompositor,
        reporter: ProgressReporter,
        paths: RunPaths,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.settings = settings
        self.logger = logger
        self.probe = probe
        self.compositor = compositor
        self.reporter = reporter
        self.paths = paths
        self.cancel_token = cancel_token or CancellationToken()

    def compose(
        self,
        scenes: Sequence[Scene],
        audio_artifacts: Sequence[AudioArtifact],
        image_artifacts: Sequence[ImageArtifact],
    ) -> CompositionResult:
        """
        Build the final video.

        Scene durations come from the measured narration length split across
        the scenes by text length, so captions and images change together.

        Raises:
            NoUsableAudio: No audio artifact exists on disk
            NoUsableImages: No image artifact exists on disk
            CompositionFailed: The compositor reported failure
        """
        self.reporter.progress(STEP, 0)

        audio = sorted(
            (a for a in audio_artifacts if a.exists and file_exists(a.file_path)),
            key=lambda a: a.scene_index,
        )
        if not audio:
            raise NoUsableAudio("No audio files available for composition")

        images = {i.scene_index: i for i in image_artifacts if i.local_path and file_exists(i.local_path)}
        if not images:
            raise NoUsableImages("No images available for composition")

        # scenes without a surviving image are dropped; pairing stays by scene index
        used_scenes = [scene for scene in scenes if scene.index in images]
        used_count = len(used_scenes)
        if used_count == 0:
            raise NoUsableImages("No scenes left to compose")
        if used_count < len(scenes):
            self.reporter.warning(STEP, f"Only {used_count}/{len(scenes)} scenes have images; composing those")

        total_ms = self._measure_audio(audio)
        self.reporter.info(STEP, f"Narration length: {total_ms / 1000:.2f}s")

        durations = self._allocate(used_scenes, total_ms)

        subtitle_path = write_srt(build_cues(used_scenes, durations), self.paths.subtitle_path)
        write_timemap(build_timemap(used_scenes, durations), self.paths.timemap_path)
        self.reporter.info(STEP, f"Captions aligned to audio: {subtitle_path.name}")

        self.cancel_token.raise_if_cancelled()
        request = CompositorRequest(
            audio_files=[a.file_path for a in audio],
            image_files=[images[scene.index].local_path for scene in used_scenes],
            output_path=str(self.paths.video_path),
            subtitle_path=str(subtitle_path),
            scene_durations_ms=durations,
            options=CompositorOptions(
                fps=self.settings.video_fps,
                video_codec=self.settings.video_codec,
                audio_codec=self.settings.audio_codec,
            ),
        )
        self.reporter.info(STEP, "Rendering video...")
        result = self.compositor.compose(request, on_progress=self._on_progress)
        if not result.success:
            raise CompositionFailed(result.message or "Video composition failed")

        video_path = Path(result.video_path or request.output_path)
        size = result.size
        if not video_path.exists():
            self.reporter.warning(STEP, f"Compositor reported success but {video_path} does not exist")
            size = size or 0
        elif size is None:
            size = video_path.stat().st_size

        duration_ms = int(round(result.duration * 1000)) if result.duration else total_ms
        self.reporter.progress(STEP, 100)
        self.reporter.success(STEP, f"Video ready: {video_path} ({duration_ms / 1000:.2f}s)")

        return CompositionResult(
            video_path=str(video_path),
            duration_ms=duration_ms,
            size_bytes=size,
            subtitle_path=str(subtitle_path),
            scene_durations=to_scene_durations(durations, [scene.index for scene in used_scenes]),
        )

    def _measure_audio(self, audio: Sequence[AudioArtifact]) -> int:
        total_ms = 0
        for artifact in audio:
            self.cancel_token.raise_if_cancelled()
            result = self.probe.probe(artifact.file_path)
            if result.success:
                total_ms += int(round(result.seconds * 1000))
            else:
                self.reporter.warning(
                    STEP,
                    f"Could not measure {Path(artifact.file_path).name}, assuming {self.settings.probe_fallback_ms}ms",
                )
                total_ms += self.settings.probe_fallback_ms

        if total_ms <= 0:
            self.reporter.warning(STEP, f"Audio has zero length, using {self.settings.empty_audio_fallback_ms}ms")
            total_ms = self.settings.empty_audio_fallback_ms
        return total_ms

    def _allocate(self, scenes: Sequence[Scene], total_ms: int) -> list[int]:
        # captions and images share one allocation, so the stricter floor wins
        min_ms = max(self.settings.min_scene_ms, self.settings.min_caption_ms)
        if not is_floor_feasible(len(scenes), total_ms, min_ms):
            self.reporter.warning(
                STEP,
                f"{len(scenes)} scenes x {min_ms}ms exceed {total_ms}ms of audio; splitting evenly",
            )
        return allocate_for_texts([scene.text for scene in scenes], total_ms, min_ms)

    def _on_progress(self, percent: int) -> None:
        self.cancel_token.raise_if_cancelled()
        self.reporter.progress(STEP, percent, f"Rendering {percent}%")
