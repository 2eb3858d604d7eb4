"""Subtitle Synchronizer - aligns caption cues to scene durations and reads/writes SRT."""

import json
import re
from pathlib import Path
from typing import Any, Sequence, Union

from app.models.schemas import Scene, SubtitleCue

TIMESTAMP_RE = re.compile(r"^(\d{2,}):(\d{2}):(\d{2}),(\d{3})$")
TIMING_LINE_RE = re.compile(r"^\s*(\S+)\s*-->\s*(\S+)\s*$")
BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def format_timestamp(ms: int) -> str:
    """
    Format milliseconds as an SRT timestamp ``HH:MM:SS,mmm``.

    Negative values are clamped to zero.
    """
    total = max(0, int(ms))
    hours, rest = divmod(total, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def parse_timestamp(value: str) -> int:
    """Parse an SRT timestamp into milliseconds."""
    match = TIMESTAMP_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid SRT timestamp: {value!r}")
    hours, minutes, seconds, millis = (int(part) for part in match.groups())
    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + millis


def build_cues(scenes: Sequence[Scene], durations_ms: Sequence[int]) -> list[SubtitleCue]:
    """
    Lay out one cue per non-empty scene, end to end, starting at zero.

    Scenes with empty (trimmed) text, or with a zero duration, produce no cue
    but still advance the clock by their duration.

    Args:
        scenes: Scenes in playback order
        durations_ms: Duration of every scene, parallel to ``scenes``

    Returns:
        Cues in playback order
    """
    if len(durations_ms) < len(scenes):
        raise ValueError(f"Expected {len(scenes)} durations, got {len(durations_ms)}")

    cues = []
    clock = 0
    for scene, duration in zip(scenes, durations_ms):
        duration = max(0, int(duration))
        # Blank lines inside a cue would end the SRT block early
        text = BLANK_LINES_RE.sub("\n", (scene.text or "").replace("\r\n", "\n")).strip()
        if text and duration > 0:
            cues.append(SubtitleCue(start_ms=clock, end_ms=clock + duration, text=text))
        clock += duration
    return cues


def serialize_srt(cues: Sequence[SubtitleCue]) -> str:
    """Serialize cues to SRT text (numbered blocks separated by blank lines)."""
    blocks = []
    for number, cue in enumerate(cues, start=1):
        text = cue.text.replace("\r\n", "\n")
        blocks.append(f"{number}\n{format_timestamp(cue.start_ms)} --> {format_timestamp(cue.end_ms)}\n{text}\n")
    return "\n".join(blocks)


def parse_srt(content: str) -> list[SubtitleCue]:
    """
    Parse SRT text into cues.

    Tolerates CRLF line endings and a leading byte-order mark.
    """
    content = content.lstrip("\ufeff").replace("\r\n", "\n")
    cues = []
    for block in re.split(r"\n\s*\n", content.strip()):
        lines = block.split("\n")
        if len(lines) < 2:
            continue
        # The numeric index line is optional in the wild
        timing_index = 1 if not TIMING_LINE_RE.match(lines[0]) else 0
        match = TIMING_LINE_RE.match(lines[timing_index])
        if not match:
            raise ValueError(f"Invalid SRT block: {block!r}")
        start, end = match.groups()
        text = "\n".join(lines[timing_index + 1:])
        cues.append(SubtitleCue(start_ms=parse_timestamp(start), end_ms=parse_timestamp(end), text=text))
    return cues


def write_srt(cues: Sequence[SubtitleCue], path: Union[str, Path]) -> Path:
    """Write cues as a UTF-8 SRT file (no BOM) and return its path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        f.write(serialize_srt(cues))
    return path


def read_srt(path: Union[str, Path]) -> list[SubtitleCue]:
    with open(path, "r", encoding="utf-8") as f:
        return parse_srt(f.read())


def estimate_scene_durations(
    scenes: Sequence[Scene],
    per_word_ms: int = 400,
    min_ms: int = 2000,
) -> list[int]:
    """
    Rough spoken duration per scene, used before real audio is measured.

    Empty scenes get zero.
    """
    estimates = []
    for scene in scenes:
        words = len((scene.text or "").split())
        estimates.append(max(min_ms, words * per_word_ms) if words else 0)
    return estimates


def build_timemap(scenes: Sequence[Scene], durations_ms: Sequence[int]) -> dict[str, Any]:
    """Absolute start/end of every scene on the final timeline."""
    entries = []
    clock = 0
    for scene, duration in zip(scenes, durations_ms):
        entries.append(
            {
                "index": scene.index,
                "start_ms": clock,
                "end_ms": clock + duration,
                "duration_ms": duration,
                "text": scene.text,
            }
        )
        clock += duration
    return {"version": 1, "total_duration_ms": clock, "scenes": entries}


def write_timemap(timemap: dict[str, Any], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(timemap, f, indent=2, ensure_ascii=False)
    return path
