"""Media Probe - measures real playback duration of audio files."""

from pathlib import Path
from typing import Any, Union

from moviepy.editor import AudioFileClip

from app.core.config import Settings
from app.models.schemas import ProbeResult


class MediaProbe:
    """Duration probe backed by MoviePy (ffmpeg under the hood)."""

    def __init__(self, settings: Settings, logger: Any):
        self.settings = settings
        self.logger = logger

    def probe(self, file_path: Union[str, Path]) -> ProbeResult:
        """
        Measure the duration of one audio file.

        Never raises; an unreadable file yields ``success=False``.
        """
        clip = None
        try:
            clip = AudioFileClip(str(file_path))
            seconds = float(clip.duration or 0.0)
            return ProbeResult(success=True, seconds=max(0.0, seconds))
        except Exception as e:
            self.logger.warning(f"Duration probe failed for {file_path}: {e}")
            return ProbeResult(success=False, seconds=0.0)
        finally:
            if clip is not None:
                try:
                    clip.close()
                except Exception as e:
                    self.logger.debug(f"Error closing audio clip {file_path}: {e}")
