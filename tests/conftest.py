"""Shared pytest fixtures and configuration."""

import pytest

from app.core.config import Settings
from app.core.logging_config import get_logger
from app.models.schemas import Scene
from app.pipelines.run_full_pipeline import ServiceContainer
from app.services.media_store import MediaStore
from app.services.progress import ProgressReporter, QueueProgressChannel
from app.utils.io_utils import RunPaths
from tests.fakes import FakeCompositor, FakeImageClient, FakeProbe, FakeTTSClient


@pytest.fixture
def settings(tmp_path):
    """Create test settings instance (stub providers, no retry waits, temp dirs)."""
    return Settings(
        _env_file=None,
        tts_engine="stub",
        image_provider="stub",
        elevenlabs_api_key=None,
        openai_api_key=None,
        replicate_api_token=None,
        retry_base_delay_ms=0,
        image_retry_delay_ms=0,
        output_dir=str(tmp_path / "runs"),
        storage_path=str(tmp_path / "storage"),
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture
def run_paths(tmp_path):
    """Run directory layout under a temp dir."""
    return RunPaths(tmp_path / "run").create()


@pytest.fixture
def channel():
    return QueueProgressChannel(maxsize=1000)


@pytest.fixture
def reporter(channel, logger):
    return ProgressReporter(channel=channel, logger=logger)


@pytest.fixture
def scenes():
    return [
        Scene(index=0, text="The river wakes before the town does."),
        Scene(index=1, text="Fishermen push their boats into the mist.", visual_description="boats in morning mist"),
        Scene(index=2, text="By noon the market is loud with voices."),
    ]


@pytest.fixture
def fake_services(tmp_path, settings, logger):
    """Service container with fake synthesis, image, probe and compositor adapters."""
    return ServiceContainer(
        tts_client=FakeTTSClient(),
        image_client=FakeImageClient(tmp_path / "generated"),
        media_store=MediaStore(settings, logger),
        probe=FakeProbe(),
        compositor=FakeCompositor(),
    )
