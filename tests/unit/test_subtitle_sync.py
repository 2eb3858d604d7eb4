"""Tests for the subtitle synchronizer."""

import json

import pytest

from app.models.schemas import Scene, SubtitleCue
from app.services.subtitle_sync import (
    build_cues,
    build_timemap,
    estimate_scene_durations,
    format_timestamp,
    parse_srt,
    parse_timestamp,
    read_srt,
    serialize_srt,
    write_srt,
    write_timemap,
)


def make_scenes(*texts):
    return [Scene(index=i, text=text) for i, text in enumerate(texts)]


def test_format_and_parse_timestamp():
    assert format_timestamp(0) == "00:00:00,000"
    assert format_timestamp(3_723_045) == "01:02:03,045"
    assert format_timestamp(-50) == "00:00:00,000"
    assert parse_timestamp("01:02:03,045") == 3_723_045


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(ValueError):
        parse_timestamp("1:2:3.4")


def test_cues_are_contiguous_and_start_at_zero():
    scenes = make_scenes("First line.", "Second line.", "Third line.", "Fourth.")
    cues = build_cues(scenes, [1200, 3400, 2000, 1500])

    assert cues[0].start_ms == 0
    for current, following in zip(cues, cues[1:]):
        assert current.end_ms == following.start_ms
    assert cues[-1].end_ms == 8100


def test_empty_scene_advances_clock_without_cue():
    scenes = make_scenes("Hello.", "   ", "World.")
    cues = build_cues(scenes, [1000, 500, 1000])

    assert [c.text for c in cues] == ["Hello.", "World."]
    assert cues[1].start_ms == 1500
    assert cues[1].end_ms == 2500


def test_zero_duration_scene_has_no_cue():
    cues = build_cues(make_scenes("a", "b"), [0, 1000])
    assert len(cues) == 1
    assert cues[0].start_ms == 0


def test_blank_lines_inside_text_are_collapsed():
    cues = build_cues(make_scenes("one\n\n\ntwo"), [1000])
    assert cues[0].text == "one\ntwo"


def test_missing_durations_raise():
    with pytest.raises(ValueError):
        build_cues(make_scenes("a", "b"), [1000])


def test_serialize_format():
    cues = [SubtitleCue(start_ms=0, end_ms=1500, text="Hi"), SubtitleCue(start_ms=1500, end_ms=2000, text="There")]
    content = serialize_srt(cues)
    assert content == "1\n00:00:00,000 --> 00:00:01,500\nHi\n\n2\n00:00:01,500 --> 00:00:02,000\nThere\n"


def test_round_trip_is_exact():
    cues = build_cues(make_scenes("Line one", "Two lines\nof text", "Ünïcödé ✓"), [1234, 5678, 91011])
    assert parse_srt(serialize_srt(cues)) == cues


def test_parse_tolerates_bom_and_crlf():
    content = "\ufeff1\r\n00:00:00,000 --> 00:00:01,000\r\nHello\r\n\r\n2\r\n00:00:01,000 --> 00:00:02,500\r\nWorld\r\n"
    cues = parse_srt(content)

    assert [(c.start_ms, c.end_ms, c.text) for c in cues] == [(0, 1000, "Hello"), (1000, 2500, "World")]


def test_write_and_read_file(tmp_path):
    cues = build_cues(make_scenes("a", "b"), [1000, 2000])
    path = write_srt(cues, tmp_path / "nested" / "subtitle.srt")

    raw = path.read_bytes()
    assert not raw.startswith(b"\xef\xbb\xbf")
    assert b"\r\n" not in raw
    assert read_srt(path) == cues


def test_estimate_scene_durations():
    scenes = make_scenes("one two three four five six", "hi", "")
    assert estimate_scene_durations(scenes, per_word_ms=400, min_ms=2000) == [2400, 2000, 0]


def test_timemap(tmp_path):
    scenes = make_scenes("a", "b")
    timemap = build_timemap(scenes, [1000, 2500])

    assert timemap["total_duration_ms"] == 3500
    assert timemap["scenes"][1]["start_ms"] == 1000
    assert timemap["scenes"][1]["end_ms"] == 3500

    path = write_timemap(timemap, tmp_path / "subtitle.timemap.json")
    assert json.loads(path.read_text(encoding="utf-8")) == timemap
