"""Application configuration using pydantic-settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="Script Video Factory", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional log file path (rotated)")

    # ========================================================================
    # TTS (Text-to-Speech) Settings
    # ========================================================================
    tts_engine: str = Field(
        default="auto",
        description="TTS engine: 'elevenlabs', 'openai', 'stub' or 'auto' (pick from available keys)",
    )
    elevenlabs_api_key: Optional[str] = Field(default=None, description="ElevenLabs API key")
    elevenlabs_voice_id: Optional[str] = Field(default=None, description="Default ElevenLabs voice ID")
    elevenlabs_model: str = Field(default="eleven_multilingual_v2", description="ElevenLabs model ID")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key (used for TTS)")
    openai_tts_model: str = Field(default="tts-1", description="OpenAI TTS model name")
    tts_request_timeout_seconds: int = Field(default=30, description="Timeout for a single scene TTS request")

    # ========================================================================
    # Image Generation Settings
    # ========================================================================
    image_provider: str = Field(
        default="auto",
        description="Image provider: 'replicate', 'stub' or 'auto' (replicate when a token is set)",
    )
    replicate_api_token: Optional[str] = Field(default=None, description="Replicate API token")
    replicate_model: str = Field(
        default="black-forest-labs/flux-schnell", description="Replicate model used for scene images"
    )
    replicate_api_url: str = Field(default="https://api.replicate.com/v1", description="Replicate API base URL")
    image_request_timeout_seconds: int = Field(default=120, description="Timeout for one image request")
    image_style: str = Field(default="photo", description="Default image style")
    image_width: int = Field(default=1920, description="Generated image width in pixels")
    image_height: int = Field(default=1080, description="Generated image height in pixels")
    image_aspect_ratio: str = Field(default="16:9", description="Generated image aspect ratio")
    image_max_retries: int = Field(
        default=2, description="Additional attempts per scene image after the first one fails"
    )
    image_retry_delay_ms: int = Field(
        default=2000, description="Delay unit between image attempts (multiplied by the attempt number)"
    )
    image_prompt_excerpt_chars: int = Field(
        default=100, description="Characters of scene text used when a scene has no visual description"
    )

    # ========================================================================
    # Retry Policy Settings
    # ========================================================================
    retry_max_retries: int = Field(default=3, description="Retries for retryable network errors")
    retry_base_delay_ms: int = Field(default=1000, description="Base delay for exponential backoff")
    retry_overload_min_retries: int = Field(
        default=5, description="Minimum retry ceiling once a call is classified as overloaded"
    )

    # ========================================================================
    # Timing & Caption Settings
    # ========================================================================
    min_scene_ms: int = Field(default=1200, description="Minimum duration of one scene in the final video")
    min_caption_ms: int = Field(default=1200, description="Minimum duration of one caption cue")
    estimate_ms_per_word: int = Field(default=400, description="First-pass caption estimate per word")
    estimate_min_scene_ms: int = Field(default=2000, description="First-pass caption estimate floor per scene")
    probe_fallback_ms: int = Field(default=1000, description="Duration used when one audio file cannot be probed")
    empty_audio_fallback_ms: int = Field(
        default=10000, description="Total duration used when every probe returned zero"
    )

    # ========================================================================
    # Video Composition Settings
    # ========================================================================
    video_fps: int = Field(default=24, description="Output video frames per second")
    video_codec: str = Field(default="libx264", description="Output video codec")
    audio_codec: str = Field(default="aac", description="Output audio codec")
    video_width: int = Field(default=1920, description="Output video width in pixels")
    video_height: int = Field(default=1080, description="Output video height in pixels")
    video_preset: str = Field(default="medium", description="Encoder preset passed to ffmpeg")

    # ========================================================================
    # Progress Channel
    # ========================================================================
    progress_queue_size: int = Field(
        default=1000, description="Capacity of the progress event queue (oldest events are kept)"
    )

    # ========================================================================
    # Storage Settings
    # ========================================================================
    output_dir: str = Field(default="outputs/runs", description="Base directory for per-run artifacts")
    storage_path: str = Field(default="storage/runs", description="Directory for finished run records")


# Global settings instance
settings = Settings()
