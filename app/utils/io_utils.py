"""I/O utility functions for file and directory operations."""

# This module is part of app.utils package

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "webp")


def slugify(text: str) -> str:
    """
    Convert text to a filesystem-safe slug.

    Args:
        text: Input text to slugify.

    Returns:
        Filesystem-safe slug string ("run" when nothing usable remains).
    """
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "-", text)
    text = text.strip("-")
    if len(text) > 60:
        text = text[:60].rstrip("-")
    return text or "run"


@dataclass(frozen=True)
class RunPaths:
    """Directory layout of one pipeline run."""

    run_dir: Path

    @property
    def audio_dir(self) -> Path:
        return self.run_dir / "audio"

    @property
    def images_dir(self) -> Path:
        return self.run_dir / "images"

    @property
    def scripts_dir(self) -> Path:
        return self.run_dir / "scripts"

    @property
    def output_dir(self) -> Path:
        return self.run_dir / "output"

    @property
    def subtitle_path(self) -> Path:
        return self.scripts_dir / "subtitle.srt"

    @property
    def timemap_path(self) -> Path:
        return self.scripts_dir / "subtitle.timemap.json"

    @property
    def video_path(self) -> Path:
        return self.output_dir / "final_video.mp4"

    def create(self) -> "RunPaths":
        for directory in (self.audio_dir, self.images_dir, self.scripts_dir, self.output_dir):
            directory.mkdir(parents=True, exist_ok=True)
        return self


def create_run_output_dir(base_dir: Union[str, Path], slug: str, timestamp: Optional[datetime] = None) -> RunPaths:
    """
    Create a timestamped directory tree for a pipeline run.

    Args:
        base_dir: Base directory for outputs (e.g., "outputs/runs").
        slug: Slugified identifier for the run (e.g., from the script title).
        timestamp: Timestamp used in the directory name (defaults to now).

    Returns:
        RunPaths with audio/, images/, scripts/ and output/ created.
    """
    stamp = (timestamp or datetime.now()).strftime("%Y-%m-%d_%H%M%S")
    return RunPaths(Path(base_dir) / f"{stamp}_{slug}").create()


def file_exists(path: Optional[Union[str, Path]]) -> bool:
    """Whether ``path`` names an existing regular file."""
    if not path:
        return False
    return Path(path).is_file()


def scene_file_name(scene_index: int, extension: str, prefix: str = "scene_") -> str:
    """Deterministic per-scene file name, 1-based and zero-padded (``scene_001.jpg``)."""
    return f"{prefix}{scene_index + 1:03d}.{extension.lstrip('.')}"


def image_extension_from_url(url: str, default: str = "jpg") -> str:
    """File extension implied by an image URL, or ``default`` when unknown."""
    path = urlparse(url).path if "://" in url else url
    suffix = Path(path).suffix.lstrip(".").lower()
    return suffix if suffix in IMAGE_EXTENSIONS else default
