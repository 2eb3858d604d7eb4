"""Tests for the progress channel and reporter."""

from app.models.schemas import ErrorInfo, LogLevel, PipelineStep, ProgressEvent
from app.services.progress import NullProgressChannel, ProgressReporter, QueueProgressChannel


def test_queue_drops_when_full():
    channel = QueueProgressChannel(maxsize=2)
    for i in range(5):
        channel.publish(ProgressEvent(step=PipelineStep.AUDIO, percent=i))

    assert channel.dropped == 3
    assert [e.percent for e in channel.drain()] == [0, 1]
    assert channel.drain() == []


def test_drain_limit():
    channel = QueueProgressChannel()
    for i in range(5):
        channel.publish(ProgressEvent(step=PipelineStep.VIDEO, percent=i))

    assert len(channel.drain(limit=2)) == 2
    assert len(channel.drain()) == 3


def test_progress_is_clamped(logger):
    reporter = ProgressReporter(logger=logger)
    reporter.progress(PipelineStep.AUDIO, 150)
    reporter.progress(PipelineStep.IMAGES, -3)

    state = reporter.snapshot()
    assert state.progress[PipelineStep.AUDIO] == 100
    assert state.progress[PipelineStep.IMAGES] == 0


def test_logs_reach_state_and_channel(logger):
    channel = QueueProgressChannel()
    reporter = ProgressReporter(channel=channel, logger=logger)

    reporter.warning(PipelineStep.IMAGES, "image 2 failed")

    assert reporter.snapshot().logs[0].level == LogLevel.WARNING
    event = channel.drain()[0]
    assert event.message == "image 2 failed"
    assert event.level == LogLevel.WARNING


def test_transition_sets_times():
    reporter = ProgressReporter(channel=NullProgressChannel())
    reporter.transition(PipelineStep.SCRIPT)
    assert reporter.snapshot().start_time is not None
    assert reporter.snapshot().end_time is None

    reporter.transition(PipelineStep.COMPLETED)
    state = reporter.snapshot()
    assert state.current_step == PipelineStep.COMPLETED
    assert state.end_time is not None


def test_snapshot_is_a_copy():
    reporter = ProgressReporter()
    snapshot = reporter.snapshot()
    snapshot.logs.append(None)
    snapshot.progress[PipelineStep.AUDIO] = 99

    assert reporter.snapshot().logs == []
    assert reporter.snapshot().progress[PipelineStep.AUDIO] == 0


def test_fail_records_error():
    reporter = ProgressReporter()
    reporter.fail(ErrorInfo(reason="no_usable_images", detail="nothing", step=PipelineStep.VIDEO))
    assert reporter.snapshot().error.reason == "no_usable_images"
