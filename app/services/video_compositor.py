"""Video Compositor - renders images, narration and captions into one MP4 with MoviePy."""

import shutil
from pathlib import Path
from typing import Any, Callable, Optional

from moviepy.editor import AudioFileClip, ImageClip, concatenate_audioclips, concatenate_videoclips
from PIL import Image, ImageOps
from proglog import ProgressBarLogger

from app.core.config import Settings
from app.core.errors import PipelineCancelled
from app.models.schemas import CompositorRequest, CompositorResult

ProgressCallback = Callable[[int], None]


class RenderProgressLogger(ProgressBarLogger):
    """Forwards MoviePy's frame progress bar as integer percentages."""

    def __init__(self, on_progress: Optional[ProgressCallback] = None):
        super().__init__()
        self.on_progress = on_progress
        self.last_percent = -1

    def bars_callback(self, bar, attr, value, old_value=None):
        # "t" is the frame bar of write_videofile; the audio pass uses "chunk"
        if bar != "t" or attr != "index" or self.on_progress is None:
            return
        total = self.bars[bar].get("total") or 0
        if total <= 0:
            return
        percent = min(100, int(value * 100 / total))
        if percent != self.last_percent:
            self.last_percent = percent
            self.on_progress(percent)


class VideoCompositor:
    """Still-image slideshow compositor."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the compositor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def compose(self, request: CompositorRequest, on_progress: Optional[ProgressCallback] = None) -> CompositorResult:
        """
        Render the video described by ``request``.

        Image ``i`` is shown for ``scene_durations_ms[i]``; the audio files are
        concatenated in order as the soundtrack. The caption file is copied next
        to the video as a sidecar (``final_video.srt``). Frames fitted to the
        output size are written to ``frames/`` beside the video.

        Returns:
            CompositorResult; failures are reported with ``success=False``
        """
        if len(request.image_files) != len(request.scene_durations_ms):
            return CompositorResult(
                success=False,
                message=(
                    f"{len(request.image_files)} images but {len(request.scene_durations_ms)} scene durations"
                ),
            )

        output_path = Path(request.output_path)
        audio_clips = []
        image_clips = []
        final_video = None

        try:
            self.logger.info(f"Loading {len(request.audio_files)} audio files...")
            audio_clips = [AudioFileClip(str(path)) for path in request.audio_files]
            soundtrack = concatenate_audioclips(audio_clips)

            self.logger.info(f"Building {len(request.image_files)} image clips...")
            frames_dir = output_path.parent / "frames"
            frames_dir.mkdir(parents=True, exist_ok=True)
            for position, (image_path, duration_ms) in enumerate(zip(request.image_files, request.scene_durations_ms)):
                if duration_ms <= 0:
                    continue
                image_clips.append(self._image_clip(image_path, duration_ms / 1000.0, frames_dir, position))

            final_video = concatenate_videoclips(image_clips, method="compose")
            final_video = final_video.set_audio(soundtrack).set_duration(soundtrack.duration)
            final_video = final_video.set_fps(request.options.fps)

            self.logger.info(f"Rendering video to: {output_path}...")
            final_video.write_videofile(
                str(output_path),
                codec=request.options.video_codec,
                audio_codec=request.options.audio_codec,
                fps=request.options.fps,
                preset=self.settings.video_preset,
                logger=RenderProgressLogger(on_progress),
            )

            if request.subtitle_path and Path(request.subtitle_path).exists():
                shutil.copyfile(request.subtitle_path, output_path.with_suffix(".srt"))

            if on_progress is not None:
                on_progress(100)

            size = output_path.stat().st_size if output_path.exists() else None
            return CompositorResult(
                success=True,
                video_path=str(output_path),
                duration=final_video.duration,
                size=size,
            )

        except PipelineCancelled:
            raise
        except Exception as e:
            self.logger.error(f"Video composition failed: {e}")
            return CompositorResult(success=False, message=str(e))

        finally:
            # Release ffmpeg readers held by MoviePy clips
            for clip in [final_video, *image_clips, *audio_clips]:
                if clip is None:
                    continue
                try:
                    clip.close()
                except Exception as e:
                    self.logger.warning(f"Error closing clip: {e}")

    def _image_clip(self, image_path: str, duration: float, frames_dir: Path, position: int) -> ImageClip:
        """Image clip covering the output frame (scaled, then center-cropped)."""
        size = (self.settings.video_width, self.settings.video_height)
        frame_path = frames_dir / f"frame_{position + 1:03d}.png"

        with Image.open(image_path) as image:
            frame = ImageOps.fit(image.convert("RGB"), size, method=Image.Resampling.LANCZOS)
            frame.save(frame_path, "PNG")

        return ImageClip(str(frame_path)).set_duration(duration)
