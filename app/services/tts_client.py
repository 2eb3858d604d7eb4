"""TTS (Text-to-Speech) client abstraction for multiple providers."""

import time
import wave
from pathlib import Path
from typing import Any, Callable, Optional

import requests

from app.core.config import Settings
from app.core.errors import PipelineCancelled, ServiceError
from app.models.schemas import AudioFileDescriptor, Scene, SynthesisRequest, SynthesisResult
from app.utils.cancellation import CancellationToken
from app.utils.error_handler import format_error_message, get_fallback_suggestion
from app.utils.io_utils import scene_file_name
from app.utils.retry_policy import RetryPolicy, status_code_of
from app.utils.text_utils import estimate_spoken_seconds

ProgressCallback = Callable[[int, int], None]


class TTSClient:
    """Batched narration synthesis over ElevenLabs, OpenAI or a silent stub."""

    def __init__(self, settings: Settings, logger: Any, retry_policy: Optional[RetryPolicy] = None):
        """
        Initialize TTS client.

        Args:
            settings: Application settings
            logger: Logger instance
            retry_policy: Retry policy for network calls (built from settings if omitted)
        """
        self.settings = settings
        self.logger = logger
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings, logger)
        self.provider = self._detect_provider()

    def _detect_provider(self, requested: Optional[str] = None) -> str:
        """Pick the provider: explicit request, then settings, then available credentials."""
        engine = (requested or self.settings.tts_engine or "auto").lower()
        if engine != "auto":
            return engine
        if self.settings.elevenlabs_api_key:
            return "elevenlabs"
        elif self.settings.openai_api_key:
            return "openai"
        else:
            return "stub"

    def batch_timeout_seconds(self, scene_count: int) -> int:
        """Time budget for a whole batch: at least a minute, ten seconds per scene."""
        return max(60, scene_count * 10)

    def synthesize(
        self,
        request: SynthesisRequest,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SynthesisResult:
        """
        Synthesize narration for every scene of a script.

        One file per non-empty scene is written to ``request.output_dir``.
        A scene that still fails after retries is reported as a descriptor
        without ``audio_url``; authentication failures end the batch.

        Args:
            request: Scenes, voice and output directory
            on_progress: Called with (processed, total) after every scene
            cancel_token: Optional cancellation token

        Returns:
            SynthesisResult with one descriptor per synthesized scene
        """
        provider = self._detect_provider(request.engine)
        output_dir = Path(request.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        total = len(request.scenes)
        deadline = time.monotonic() + self.batch_timeout_seconds(total)

        self.logger.info(
            f"Synthesizing {total} scenes with {provider} (voice={request.voice_id}, speed={request.speed})"
        )

        descriptors = []
        for processed, scene in enumerate(request.scenes, start=1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            if time.monotonic() > deadline:
                return SynthesisResult(
                    ok=False,
                    audio_files=descriptors,
                    error=f"Synthesis timed out after {self.batch_timeout_seconds(total)}s",
                )

            if scene.text.strip():
                extension = "wav" if provider == "stub" else "mp3"
                output_path = output_dir / scene_file_name(scene.index, extension, prefix="scene-")
                try:
                    self.retry_policy.execute(
                        lambda: self._generate(provider, scene, output_path, request),
                        context=self.retry_policy.context(f"tts scene {scene.index + 1}"),
                        cancel_token=cancel_token,
                    )
                    descriptors.append(
                        AudioFileDescriptor(
                            scene_index=scene.index, file_name=output_path.name, audio_url=str(output_path)
                        )
                    )
                except PipelineCancelled:
                    raise
                except Exception as e:
                    self.logger.error(
                        format_error_message(
                            "Generating speech",
                            e,
                            context={"scene": scene.index + 1, "provider": provider},
                            suggestion=get_fallback_suggestion("TTS", e),
                        )
                    )
                    if status_code_of(e) in (401, 403) or isinstance(e, ValueError):
                        return SynthesisResult(ok=False, audio_files=descriptors, error=str(e))
                    descriptors.append(AudioFileDescriptor(scene_index=scene.index, file_name=output_path.name))
            else:
                self.logger.warning(f"Scene {scene.index + 1} has no text, skipping synthesis")

            if on_progress is not None:
                on_progress(processed, total)

        return SynthesisResult(ok=True, audio_files=descriptors)

    def _generate(self, provider: str, scene: Scene, output_path: Path, request: SynthesisRequest) -> None:
        if provider == "elevenlabs":
            self._generate_elevenlabs(scene.text, output_path, request.voice_id, request.speed)
        elif provider == "openai":
            self._generate_openai(scene.text, output_path, request.voice_id, request.speed)
        elif provider == "stub":
            self._generate_stub(scene.text, output_path, request.speed)
        else:
            raise ValueError(f"Unknown TTS engine: {provider}")

    def _generate_elevenlabs(
        self, text: str, output_path: Path, voice_id: Optional[str] = None, speed: float = 1.0
    ) -> None:
        """Generate speech using ElevenLabs API."""
        if not self.settings.elevenlabs_api_key:
            raise ValueError("ElevenLabs API key not configured")

        voice_id = voice_id or self.settings.elevenlabs_voice_id
        if not voice_id:
            raise ValueError("ElevenLabs voice ID not configured")

        url = f"https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"

        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.settings.elevenlabs_api_key,
        }

        data = {
            "text": text,
            "model_id": self.settings.elevenlabs_model,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
                "speed": speed,
            },
        }

        response = requests.post(url, json=data, headers=headers, timeout=self.settings.tts_request_timeout_seconds)

        if response.status_code != 200:
            raise ServiceError(
                f"ElevenLabs API returned status {response.status_code}: {response.text[:300]}",
                status_code=response.status_code,
            )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(response.content)

    def _generate_openai(
        self, text: str, output_path: Path, voice_id: Optional[str] = None, speed: float = 1.0
    ) -> None:
        """Generate speech using OpenAI TTS API."""
        from openai import OpenAI

        if not self.settings.openai_api_key:
            raise ValueError("OpenAI API key not configured")

        client = OpenAI(api_key=self.settings.openai_api_key)

        response = client.audio.speech.create(
            model=self.settings.openai_tts_model,
            voice=voice_id or "alloy",
            input=text,
            speed=speed,
        )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        response.stream_to_file(str(output_path))

    def _generate_stub(self, text: str, output_path: Path, speed: float = 1.0) -> None:
        """
        Write a silent WAV roughly as long as the text would take to speak.

        Used when no TTS provider is configured.
        """
        duration_seconds = estimate_spoken_seconds(text, speed=speed)
        sample_rate = 22050
        num_samples = int(duration_seconds * sample_rate)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with wave.open(str(output_path), "wb") as wav_file:
            wav_file.setnchannels(1)
            wav_file.setsampwidth(2)
            wav_file.setframerate(sample_rate)
            wav_file.writeframes(b"\x00\x00" * num_samples)
