"""Tests for the FastAPI routes."""

import threading

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.pipelines.run_full_pipeline import ServiceContainer
from app.pipelines.run_manager import RunManager
from app.services.media_store import MediaStore
from tests.fakes import FakeCompositor, FakeImageClient, FakeProbe, FakeTTSClient


class GatedTTSClient(FakeTTSClient):
    """Blocks synthesis until the gate opens."""

    def __init__(self, gate):
        super().__init__()
        self.gate = gate

    def synthesize(self, request, on_progress=None, cancel_token=None):
        self.gate.wait(5)
        return super().synthesize(request, on_progress, cancel_token)


@pytest.fixture
def gate():
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def manager(settings, logger, tmp_path, gate):
    def services_factory(settings, logger):
        return ServiceContainer(
            tts_client=GatedTTSClient(gate),
            image_client=FakeImageClient(tmp_path / "generated"),
            media_store=MediaStore(settings, logger),
            probe=FakeProbe(),
            compositor=FakeCompositor(),
        )

    return RunManager(settings, logger, services_factory=services_factory)


@pytest.fixture
def client(settings, manager):
    return TestClient(create_app(settings, run_manager=manager))


PAYLOAD = {"title": "Harbor", "scenes": ["Boats leave at dawn.", "Gulls follow them out."], "speed": 1.1}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_no_run_yet(client):
    response = client.get("/runs/current")
    assert response.status_code == 200
    assert response.json()["run_id"] is None
    assert response.json()["state"]["current_step"] == "idle"


def test_start_run_and_complete(client, manager, gate):
    response = client.post("/runs", json=PAYLOAD)
    assert response.status_code == 202
    run_id = response.json()["run_id"]
    assert run_id.endswith("_harbor")

    gate.set()
    assert manager.wait(10)

    body = client.get("/runs/current").json()
    assert body["state"]["current_step"] == "completed"
    assert body["result"]["video_path"].endswith("final_video.mp4")
    assert manager.repository.load_run(run_id) is not None

    events = client.get("/runs/current/events", params={"limit": 5}).json()
    assert len(events) == 5
    assert events[0]["step"] == "script"


def test_second_run_while_busy_conflicts(client, manager, gate):
    assert client.post("/runs", json=PAYLOAD).status_code == 202

    response = client.post("/runs", json=PAYLOAD)

    assert response.status_code == 409
    gate.set()
    manager.wait(10)


def test_cancel_active_run(client, manager, gate):
    client.post("/runs", json=PAYLOAD)

    response = client.post("/runs/current/cancel")
    assert response.status_code == 200
    gate.set()
    assert manager.wait(10)

    state = client.get("/runs/current").json()["state"]
    assert state["current_step"] == "cancelled"
    assert state["error"]["reason"] == "cancelled"


def test_cancel_without_run(client):
    assert client.post("/runs/current/cancel").status_code == 404


def test_empty_scene_list_is_rejected(client):
    assert client.post("/runs", json={"title": "x", "scenes": []}).status_code == 422
