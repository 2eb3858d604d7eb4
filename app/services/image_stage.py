"""Image synthesis stage - one illustration per scene, sequential with retries."""

import time
from typing import Any, Callable, Optional, Sequence

from app.core.config import Settings
from app.core.errors import PipelineCancelled
from app.models.schemas import ImageArtifact, ImageGenRequest, ImageGenResult, PipelineStep, Scene, StyleConfig
from app.services.image_client import ImageGenClient
from app.services.media_store import MediaStore
from app.services.progress import ProgressReporter
from app.utils.cancellation import CancellationToken
from app.utils.io_utils import RunPaths, image_extension_from_url, scene_file_name
from app.utils.text_utils import build_image_prompt

STEP = PipelineStep.IMAGES


class ImageSynthesisStage:
    """
    Generates and stores scene images.

    A scene whose image cannot be produced gets an artifact with
    ``local_path=None``; the stage itself never aborts on generation errors.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        image_client: ImageGenClient,
        media_store: MediaStore,
        reporter: ProgressReporter,
        paths: RunPaths,
        cancel_token: Optional[CancellationToken] = None,
        sleeper: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.logger = logger
        self.image_client = image_client
        self.media_store = media_store
        self.reporter = reporter
        self.paths = paths
        self.cancel_token = cancel_token
        self.sleeper = sleeper

    def generate_images(self, scenes: Sequence[Scene], style_config: StyleConfig) -> list[ImageArtifact]:
        """
        Generate one image per scene, in scene order.

        Returns:
            A list with exactly one artifact per scene
        """
        total = len(scenes)
        provider = getattr(self.image_client, "provider_name", "unknown")
        self.reporter.progress(STEP, 0)
        self.reporter.info(STEP, f"Generating {total} images with {provider}...")

        artifacts = []
        for i, scene in enumerate(scenes):
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()

            prompt = build_image_prompt(
                scene.text,
                scene.visual_description,
                style_config.style,
                excerpt_chars=self.settings.image_prompt_excerpt_chars,
            )
            artifact = self._generate_scene_image(scene, prompt, style_config, provider)
            artifacts.append(artifact)

            if artifact.ok:
                self.reporter.info(STEP, f"Image {i + 1}/{total} saved")
            else:
                self.reporter.warning(STEP, f"Image {i + 1}/{total} failed: {artifact.error}")
            self.reporter.progress(STEP, (i + 1) / total * 100, f"Processed {i + 1}/{total} images")

        succeeded = sum(1 for artifact in artifacts if artifact.ok)
        self.reporter.success(STEP, f"Generated {succeeded}/{total} images")
        return artifacts

    def _generate_scene_image(
        self, scene: Scene, prompt: str, style_config: StyleConfig, provider: str
    ) -> ImageArtifact:
        request = ImageGenRequest(
            prompt=prompt,
            style=style_config.style,
            width=style_config.width,
            height=style_config.height,
            aspect_ratio=style_config.aspect_ratio,
        )

        max_retries = self.settings.image_max_retries
        last_error = None
        url = None
        for attempt in range(max_retries + 1):
            if attempt > 0:
                self._wait(self.settings.image_retry_delay_ms * attempt / 1000.0)
                self.logger.info(
                    f"Retrying image for scene {scene.index + 1} (attempt {attempt + 1}/{max_retries + 1})"
                )

            try:
                result: ImageGenResult = self.image_client.generate(request, cancel_token=self.cancel_token)
            except PipelineCancelled:
                raise
            except Exception as e:
                last_error = str(e)
                self.logger.warning(f"Image generation error for scene {scene.index + 1}: {e}")
                continue

            if result.ok and result.images:
                url = result.images[0]
                break
            last_error = result.error or "Image service returned no images"
            self.logger.warning(f"Image generation failed for scene {scene.index + 1}: {last_error}")

        if url is None:
            return ImageArtifact(scene_index=scene.index, provider=provider, prompt=prompt, error=last_error)

        output_path = self.paths.images_dir / scene_file_name(scene.index, image_extension_from_url(url))
        try:
            self.media_store.save_image(url, output_path, cancel_token=self.cancel_token)
        except PipelineCancelled:
            raise
        except Exception as e:
            return ImageArtifact(
                scene_index=scene.index,
                source_url=url,
                provider=provider,
                prompt=prompt,
                error=f"Download failed: {e}",
            )

        return ImageArtifact(
            scene_index=scene.index,
            local_path=str(output_path),
            source_url=url,
            provider=provider,
            prompt=prompt,
        )

    def _wait(self, seconds: float) -> None:
        if self.cancel_token is None:
            self.sleeper(seconds)
        elif self.cancel_token.wait(seconds):
            raise PipelineCancelled()
