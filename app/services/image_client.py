"""Image generation client (Replicate predictions API, or a local placeholder stub)."""

import hashlib
import tempfile
import time
from pathlib import Path
from typing import Any, Optional

import requests
from PIL import Image, ImageDraw, ImageFont

from app.core.config import Settings
from app.core.errors import PipelineCancelled, ServiceError
from app.models.schemas import ImageGenRequest, ImageGenResult
from app.utils.cancellation import CancellationToken
from app.utils.text_utils import truncate_text

TERMINAL_PREDICTION_STATES = ("succeeded", "failed", "canceled")


class ImageGenClient:
    """Client for generating one scene image per request."""

    def __init__(self, settings: Settings, logger: Any, stub_dir: Optional[Path] = None):
        """
        Initialize the image generation client.

        Args:
            settings: Application settings
            logger: Logger instance
            stub_dir: Where the stub provider writes placeholders (temp dir by default)
        """
        self.settings = settings
        self.logger = logger
        self.provider = self._detect_provider()
        self.stub_dir = stub_dir or Path(tempfile.gettempdir()) / "script_video_factory_stub_images"

        if self.provider == "replicate" and not settings.replicate_api_token:
            raise ValueError("REPLICATE_API_TOKEN not configured. Set REPLICATE_API_TOKEN in .env file.")

    @property
    def provider_name(self) -> str:
        return "Replicate" if self.provider == "replicate" else "Stub"

    def _detect_provider(self) -> str:
        provider = (self.settings.image_provider or "auto").lower()
        if provider != "auto":
            return provider
        return "replicate" if self.settings.replicate_api_token else "stub"

    def generate(self, request: ImageGenRequest, cancel_token: Optional[CancellationToken] = None) -> ImageGenResult:
        """
        Generate an image for ``request``.

        Returns:
            ImageGenResult with the image URL(s) on success, ``ok=False`` and an
            error message when the provider reports failure

        Raises:
            ServiceError: On HTTP errors (status code attached for classification)
            requests.exceptions.RequestException: On network errors
        """
        prompt_preview = request.prompt[:120] + "..." if len(request.prompt) > 120 else request.prompt
        self.logger.info(f"Requesting image from {self.provider_name}: {prompt_preview}")

        if self.provider == "replicate":
            return self._generate_replicate(request, cancel_token)
        if self.provider == "stub":
            return self._generate_stub(request)
        raise ValueError(f"Unknown image provider: {self.provider}")

    def _generate_replicate(
        self, request: ImageGenRequest, cancel_token: Optional[CancellationToken] = None
    ) -> ImageGenResult:
        """Create a prediction and wait for it to finish."""
        headers = {
            "Authorization": f"Bearer {self.settings.replicate_api_token}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }
        payload = {
            "input": {
                "prompt": request.prompt,
                "aspect_ratio": request.aspect_ratio,
                "output_format": "jpg",
            }
        }
        url = f"{self.settings.replicate_api_url}/models/{self.settings.replicate_model}/predictions"
        timeout = self.settings.image_request_timeout_seconds

        response = requests.post(url, json=payload, headers=headers, timeout=timeout)
        prediction = self._check_response(response)

        deadline = time.monotonic() + timeout
        while prediction.get("status") not in TERMINAL_PREDICTION_STATES:
            if time.monotonic() > deadline:
                raise ServiceError(f"Replicate prediction timed out after {timeout}s")
            if cancel_token is not None and cancel_token.wait(1.0):
                raise PipelineCancelled()
            elif cancel_token is None:
                time.sleep(1.0)
            poll_url = prediction.get("urls", {}).get("get")
            if not poll_url:
                raise ServiceError("Replicate prediction has no polling URL")
            prediction = self._check_response(requests.get(poll_url, headers=headers, timeout=timeout))

        if prediction.get("status") != "succeeded":
            return ImageGenResult(ok=False, error=str(prediction.get("error") or prediction.get("status")))

        output = prediction.get("output")
        images = [output] if isinstance(output, str) else [str(item) for item in (output or [])]
        if not images:
            return ImageGenResult(ok=False, error="Replicate returned no images")
        return ImageGenResult(ok=True, images=images)

    def _check_response(self, response: requests.Response) -> dict:
        if response.status_code not in (200, 201, 202):
            raise ServiceError(
                f"Replicate error: status {response.status_code} - {response.text[:500]}",
                status_code=response.status_code,
            )
        return response.json()

    def _generate_stub(self, request: ImageGenRequest) -> ImageGenResult:
        """
        Draw a placeholder image carrying the prompt and return it as a file URL.

        The file name is derived from the prompt so repeated requests reuse it.
        """
        self.stub_dir.mkdir(parents=True, exist_ok=True)
        digest = hashlib.sha1(f"{request.prompt}|{request.width}x{request.height}".encode("utf-8")).hexdigest()[:16]
        output_path = self.stub_dir / f"{digest}.png"

        if not output_path.exists():
            image = Image.new("RGB", (request.width, request.height), color=(30, 30, 40))
            draw = ImageDraw.Draw(image)
            font = ImageFont.load_default()
            text = truncate_text(request.prompt, 80)
            bbox = draw.textbbox((0, 0), text, font=font)
            position = ((request.width - (bbox[2] - bbox[0])) // 2, (request.height - (bbox[3] - bbox[1])) // 2)
            draw.text(position, text, fill=(200, 200, 200), font=font)
            image.save(output_path, "PNG")
            self.logger.warning(f"Image provider not configured - created placeholder image: {output_path}")

        return ImageGenResult(ok=True, images=[output_path.resolve().as_uri()])
