"""Tests for the MoviePy-backed probe and compositor adapters."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from app.core.errors import PipelineCancelled
from app.models.schemas import CompositorRequest
from app.services.media_probe import MediaProbe
from app.services.video_compositor import RenderProgressLogger, VideoCompositor
from tests.fakes import write_png, write_wav


def test_probe_reports_duration(settings, logger):
    clip = MagicMock(duration=2.5)
    with patch("app.services.media_probe.AudioFileClip", return_value=clip):
        result = MediaProbe(settings, logger).probe("scene-001.mp3")

    assert result.success
    assert result.seconds == 2.5
    clip.close.assert_called_once()


def test_probe_failure_is_not_raised(settings, logger):
    with patch("app.services.media_probe.AudioFileClip", side_effect=OSError("bad file")):
        result = MediaProbe(settings, logger).probe("missing.mp3")

    assert not result.success
    assert result.seconds == 0.0


def test_progress_logger_forwards_frame_bar():
    percents = []
    progress_logger = RenderProgressLogger(percents.append)
    progress_logger.bars["t"] = {"total": 200, "index": 0}

    for index in (0, 1, 2, 100, 150, 200):
        progress_logger.bars_callback("t", "index", index)
    progress_logger.bars_callback("chunk", "index", 10)

    assert percents == [0, 1, 50, 75, 100]


def test_mismatched_request_fails_without_rendering(settings, logger):
    request = CompositorRequest(
        audio_files=["a.mp3"],
        image_files=["1.png", "2.png"],
        output_path="out.mp4",
        scene_durations_ms=[1000],
    )

    result = VideoCompositor(settings, logger).compose(request)

    assert not result.success
    assert "2 images" in result.message


def test_render_error_is_reported(settings, logger, tmp_path):
    request = CompositorRequest(
        audio_files=[str(tmp_path / "a.mp3")],
        image_files=[str(tmp_path / "1.png")],
        output_path=str(tmp_path / "output" / "final_video.mp4"),
        scene_durations_ms=[1000],
    )

    with patch("app.services.video_compositor.AudioFileClip", side_effect=OSError("ffmpeg not found")):
        result = VideoCompositor(settings, logger).compose(request)

    assert not result.success
    assert "ffmpeg not found" in result.message


@pytest.fixture
def render_request(settings, tmp_path):
    settings.video_width = 64
    settings.video_height = 36
    settings.video_preset = "ultrafast"
    subtitle_path = tmp_path / "scripts" / "subtitle.srt"
    subtitle_path.parent.mkdir(parents=True)
    subtitle_path.write_text("1\n00:00:00,000 --> 00:00:01,000\nHello\n", encoding="utf-8")
    return CompositorRequest(
        audio_files=[str(write_wav(tmp_path / "audio" / f"scene-00{i}.wav", seconds=1.0)) for i in (1, 2)],
        image_files=[str(write_png(tmp_path / "images" / f"scene_00{i}.png")) for i in (1, 2)],
        output_path=str(tmp_path / "output" / "final_video.mp4"),
        subtitle_path=str(subtitle_path),
        scene_durations_ms=[1000, 1000],
        options={"fps": 10},
    )


def test_renders_video_with_sidecar_captions(settings, logger, render_request):
    percents = []

    result = VideoCompositor(settings, logger).compose(render_request, on_progress=percents.append)

    output_path = Path(render_request.output_path)
    assert result.success, result.message
    assert result.duration == pytest.approx(2.0)
    assert result.size == output_path.stat().st_size > 0
    assert output_path.with_suffix(".srt").read_text(encoding="utf-8").startswith("1\n00:00:00,000")
    assert sorted(p.name for p in (output_path.parent / "frames").iterdir()) == ["frame_001.png", "frame_002.png"]
    assert percents and percents[-1] == 100


def test_cancellation_from_progress_callback_escapes(settings, logger, render_request):
    def cancel(percent):
        raise PipelineCancelled()

    with pytest.raises(PipelineCancelled):
        VideoCompositor(settings, logger).compose(render_request, on_progress=cancel)

    assert not Path(render_request.output_path).with_suffix(".srt").exists()
