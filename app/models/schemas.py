"""Pydantic models and schemas for the script-to-video pipeline."""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Enums
# ============================================================================


class PipelineStep(str, Enum):
    """Pipeline state machine steps."""

    IDLE = "idle"
    SCRIPT = "script"
    AUDIO = "audio"
    IMAGES = "images"
    VIDEO = "video"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStep.COMPLETED, PipelineStep.ERROR, PipelineStep.CANCELLED)


class LogLevel(str, Enum):
    """Severity of a pipeline log entry."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


PROGRESS_STEPS = (PipelineStep.SCRIPT, PipelineStep.AUDIO, PipelineStep.IMAGES, PipelineStep.VIDEO)


# ============================================================================
# Script Models
# ============================================================================


class Scene(BaseModel):
    """One narration/caption unit of the script."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Stable 0-based scene index")
    text: str = Field(default="", description="Narration text")
    visual_description: Optional[str] = Field(default=None, description="Optional image prompt for the scene")


class Script(BaseModel):
    """Ordered list of scenes produced upstream."""

    title: str = Field(default="untitled", description="Script title (used for the run directory)")
    scenes: list[Scene] = Field(default_factory=list, description="Scenes in playback order")

    @classmethod
    def from_raw(cls, raw_scenes: list[Any], title: str = "untitled") -> "Script":
        """
        Build a script from decoded JSON scenes.

        Each scene is either a string or an object with ``text`` and an optional
        ``visual_description`` (``visualDescription`` is accepted too). Indexes
        come from the list position.
        """
        scenes = []
        for i, raw in enumerate(raw_scenes):
            if isinstance(raw, str):
                scenes.append(Scene(index=i, text=raw))
            else:
                scenes.append(
                    Scene(
                        index=i,
                        text=raw.get("text", ""),
                        visual_description=raw.get("visual_description") or raw.get("visualDescription"),
                    )
                )
        return cls(title=title, scenes=scenes)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Script":
        """
        Load a script from a JSON file.

        Accepts ``{"title": ..., "scenes": [...]}`` or a bare list of scenes
        (see :meth:`from_raw`).
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        raw_scenes = data.get("scenes", []) if isinstance(data, dict) else data
        title = data.get("title", Path(path).stem) if isinstance(data, dict) else Path(path).stem
        return cls.from_raw(raw_scenes, title)


class VoiceConfig(BaseModel):
    """Voice selection for narration synthesis."""

    voice_id: Optional[str] = Field(default=None, description="Provider-specific voice ID")
    speed: float = Field(default=1.0, gt=0, description="Speaking rate multiplier")
    engine: Optional[str] = Field(default=None, description="Override the configured TTS engine")


class StyleConfig(BaseModel):
    """Visual style for scene images."""

    style: str = Field(default="photo", description="Style keyword appended to prompts")
    width: int = Field(default=1920, gt=0)
    height: int = Field(default=1080, gt=0)
    aspect_ratio: str = Field(default="16:9")


# ============================================================================
# Artifacts
# ============================================================================


class SceneDuration(BaseModel):
    """Allocated duration for one scene."""

    scene_index: int = Field(..., ge=0)
    milliseconds: int = Field(..., ge=0)


class AudioArtifact(BaseModel):
    """Narration audio file produced for one scene."""

    model_config = ConfigDict(frozen=True)

    scene_index: int = Field(..., ge=0)
    file_path: str = Field(default="", description="Local path to the audio file")
    exists: bool = Field(default=False, description="Whether the file was found on disk")


class ImageArtifact(BaseModel):
    """Illustrative image for one scene; ``local_path`` is None when generation failed."""

    model_config = ConfigDict(frozen=True)

    scene_index: int = Field(..., ge=0)
    local_path: Optional[str] = Field(default=None)
    source_url: Optional[str] = Field(default=None)
    provider: str = Field(default="unknown")
    prompt: str = Field(default="")
    error: Optional[str] = Field(default=None)

    @property
    def ok(self) -> bool:
        return self.local_path is not None


class SubtitleCue(BaseModel):
    """One caption entry."""

    model_config = ConfigDict(frozen=True)

    start_ms: int = Field(..., ge=0)
    end_ms: int = Field(..., ge=0)
    text: str

    @model_validator(mode="after")
    def check_range(self) -> "SubtitleCue":
        if self.start_ms >= self.end_ms:
            raise ValueError(f"cue start ({self.start_ms}) must be before end ({self.end_ms})")
        return self


# ============================================================================
# Pipeline State
# ============================================================================


class LogEntry(BaseModel):
    """One entry of the pipeline log."""

    timestamp: datetime = Field(default_factory=datetime.now)
    level: LogLevel = Field(default=LogLevel.INFO)
    message: str
    step: PipelineStep = Field(default=PipelineStep.IDLE)


class ErrorInfo(BaseModel):
    """Terminal error of a run: machine reason code plus human detail."""

    reason: str
    detail: str
    step: PipelineStep


def _empty_progress() -> dict[PipelineStep, int]:
    return {step: 0 for step in PROGRESS_STEPS}


class PipelineState(BaseModel):
    """Observable state of one pipeline run."""

    current_step: PipelineStep = Field(default=PipelineStep.IDLE)
    progress: dict[PipelineStep, int] = Field(default_factory=_empty_progress)
    logs: list[LogEntry] = Field(default_factory=list)
    error: Optional[ErrorInfo] = Field(default=None)
    start_time: Optional[datetime] = Field(default=None)
    end_time: Optional[datetime] = Field(default=None)


class ProgressEvent(BaseModel):
    """Record published on the progress/log channel."""

    timestamp: datetime = Field(default_factory=datetime.now)
    level: LogLevel = Field(default=LogLevel.INFO)
    message: str = Field(default="")
    step: PipelineStep
    percent: Optional[int] = Field(default=None, ge=0, le=100)


class RetryContext(BaseModel):
    """Parameters of one retried operation."""

    operation_name: str = Field(default="operation")
    max_retries: int = Field(default=3, ge=0)
    base_delay_ms: int = Field(default=1000, ge=0)


# ============================================================================
# External Service Boundary Models
# ============================================================================


class SynthesisRequest(BaseModel):
    """Batched narration request for a whole script."""

    scenes: list[Scene]
    voice_id: Optional[str] = None
    speed: float = 1.0
    engine: Optional[str] = None
    output_dir: str


class AudioFileDescriptor(BaseModel):
    """One file reported by the synthesis service."""

    scene_index: int = Field(..., ge=0)
    file_name: str
    audio_url: Optional[str] = Field(default=None, description="Local path of the written file")


class SynthesisResult(BaseModel):
    ok: bool
    audio_files: list[AudioFileDescriptor] = Field(default_factory=list)
    error: Optional[str] = None


class ImageGenRequest(BaseModel):
    prompt: str
    style: str = "photo"
    width: int = 1920
    height: int = 1080
    aspect_ratio: str = "16:9"


class ImageGenResult(BaseModel):
    ok: bool
    images: list[str] = Field(default_factory=list, description="URLs of generated images")
    error: Optional[str] = None


class ProbeResult(BaseModel):
    success: bool
    seconds: float = 0.0


class CompositorOptions(BaseModel):
    fps: int = 24
    video_codec: str = "libx264"
    audio_codec: str = "aac"


class CompositorRequest(BaseModel):
    audio_files: list[str]
    image_files: list[str]
    output_path: str
    subtitle_path: Optional[str] = None
    scene_durations_ms: list[int]
    options: CompositorOptions = Field(default_factory=CompositorOptions)


class CompositorResult(BaseModel):
    success: bool
    video_path: Optional[str] = None
    duration: Optional[float] = Field(default=None, description="Video duration in seconds")
    size: Optional[int] = Field(default=None, description="File size in bytes")
    message: Optional[str] = None


class CompositionResult(BaseModel):
    """Final output of a pipeline run."""

    video_path: str
    duration_ms: int
    size_bytes: int
    subtitle_path: Optional[str] = None
    scene_durations: list[SceneDuration] = Field(default_factory=list)


# ============================================================================
# Storage & API Models
# ============================================================================


class RunRecord(BaseModel):
    """Persisted summary of a finished run."""

    run_id: str
    title: str
    run_dir: str
    state: PipelineState
    result: Optional[CompositionResult] = None


class StartRunRequest(BaseModel):
    """Request to start a pipeline run."""

    title: str = Field(default="untitled")
    scenes: list[Union[str, dict[str, Any]]] = Field(..., min_length=1, description="Scene texts or scene objects")
    voice_id: Optional[str] = None
    speed: float = Field(default=1.0, gt=0)
    style: Optional[str] = None

    def to_script(self) -> Script:
        return Script.from_raw(self.scenes, self.title)


class RunStatusResponse(BaseModel):
    """Current run as seen by the presentation layer."""

    run_id: Optional[str] = None
    state: PipelineState
    result: Optional[CompositionResult] = None
