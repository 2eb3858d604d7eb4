"""Utility functions for the Script Video Factory."""

from app.utils.io_utils import RunPaths, create_run_output_dir, file_exists, slugify
from app.utils.text_utils import build_image_prompt, estimate_spoken_seconds, truncate_text

__all__ = [
    "RunPaths",
    "create_run_output_dir",
    "file_exists",
    "slugify",
    "build_image_prompt",
    "estimate_spoken_seconds",
    "truncate_text",
]
