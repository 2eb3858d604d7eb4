"""Media Store - persists generated images to the run directory."""

import base64
import io
import shutil
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import requests
from PIL import Image

from app.core.config import Settings
from app.core.errors import ServiceError
from app.utils.cancellation import CancellationToken
from app.utils.retry_policy import RetryPolicy


class MediaStore:
    """Downloads image URLs (http(s), file:// or data:) to local files."""

    def __init__(self, settings: Settings, logger: Any, retry_policy: Optional[RetryPolicy] = None):
        """
        Initialize the media store.

        Args:
            settings: Application settings
            logger: Logger instance
            retry_policy: Retry policy for HTTP downloads
        """
        self.settings = settings
        self.logger = logger
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings, logger)

    def save_image(self, url: str, output_path: Path, cancel_token: Optional[CancellationToken] = None) -> Path:
        """
        Persist the image behind ``url`` at ``output_path``.

        The written file is verified with Pillow; an unreadable image raises
        ValueError and the file is removed.

        Returns:
            The path written
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        scheme = urlparse(url).scheme.lower()

        if scheme == "file":
            source = Path(url2pathname(unquote(urlparse(url).path)))
            shutil.copyfile(source, output_path)
        elif scheme == "data":
            # data:image/png;base64,<payload>
            _, _, payload = url.partition(",")
            output_path.write_bytes(base64.b64decode(payload))
        elif scheme in ("http", "https"):
            content = self.retry_policy.execute(
                lambda: self._fetch(url),
                context=self.retry_policy.context(f"download {output_path.name}"),
                cancel_token=cancel_token,
            )
            output_path.write_bytes(content)
        else:
            raise ValueError(f"Unsupported image URL scheme: {url[:50]}")

        self._verify_image(output_path)
        self.logger.debug(f"Saved image {output_path} ({output_path.stat().st_size} bytes)")
        return output_path

    def _fetch(self, url: str) -> bytes:
        response = requests.get(url, timeout=self.settings.image_request_timeout_seconds)
        if response.status_code != 200:
            raise ServiceError(
                f"Image download failed: status {response.status_code}",
                status_code=response.status_code,
            )
        return response.content

    def _verify_image(self, path: Path) -> None:
        try:
            with Image.open(io.BytesIO(path.read_bytes())) as image:
                image.verify()
        except Exception as e:
            path.unlink(missing_ok=True)
            raise ValueError(f"Downloaded file is not a readable image: {e}") from e
