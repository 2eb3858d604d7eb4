"""Tests for the scene timing allocator."""

import random

import pytest

from app.services.timing_allocator import (
    allocate,
    allocate_for_texts,
    is_floor_feasible,
    scene_weights,
    split_evenly,
    to_scene_durations,
)


def test_two_scene_scenario_is_proportional():
    """Texts "A" and "BB" over 900ms split 300/600."""
    assert allocate_for_texts(["A", "BB"], 900, 100) == [300, 600]


def test_equal_scenes_share_total_equally():
    assert allocate([10, 10, 10], 9000, 1200) == [3000, 3000, 3000]


def test_infeasible_floor_splits_evenly():
    durations = allocate([5, 50, 500], 2000, 1200)

    assert sum(durations) == 2000
    assert durations == [666, 666, 668]
    assert all(d >= 0 for d in durations)


def test_short_scene_is_raised_to_floor():
    durations = allocate([1, 1000], 10000, 2000)

    assert durations[0] == 2000
    assert sum(durations) == 10000


def test_deficit_is_taken_from_scenes_above_floor():
    durations = allocate([1, 1, 200, 400], 12000, 1500)

    assert sum(durations) == 12000
    assert all(d >= 1500 for d in durations)
    assert durations[3] > durations[2]


def test_rounded_up_takes_do_not_spill_onto_last_scene():
    # ceil takes of 286 x 3 overshoot the 857ms deficit by one
    assert allocate([10, 10, 10, 1], 4400, 1000) == [1133, 1133, 1134, 1000]


def test_single_scene_gets_everything():
    assert allocate([42], 1234, 5000) == [1234]


def test_empty_input():
    assert allocate([], 5000, 1000) == []


def test_zero_total():
    assert allocate([3, 4], 0, 0) == [0, 0]


def test_zero_length_text_counts_as_weight_one():
    assert scene_weights(["", "  \n", "ab c"]) == [1, 1, 3]


@pytest.mark.parametrize("total_ms,min_ms", [(-1, 100), (100, -1)])
def test_negative_arguments_are_rejected(total_ms, min_ms):
    with pytest.raises(ValueError):
        allocate([1, 2], total_ms, min_ms)


def test_sum_and_floor_hold_for_random_inputs():
    rng = random.Random(1234)
    for _ in range(500):
        count = rng.randint(1, 12)
        lengths = [rng.randint(0, 400) for _ in range(count)]
        min_ms = rng.randint(0, 3000)
        total_ms = count * min_ms + rng.randint(0, 60000)

        durations = allocate(lengths, total_ms, min_ms)

        assert len(durations) == count
        assert sum(durations) == total_ms
        assert all(d >= min_ms for d in durations), (lengths, total_ms, min_ms, durations)


def test_infeasible_random_inputs_keep_exact_sum():
    rng = random.Random(99)
    for _ in range(200):
        count = rng.randint(2, 10)
        min_ms = rng.randint(500, 3000)
        total_ms = rng.randint(0, count * min_ms - 1)

        durations = allocate([rng.randint(0, 100) for _ in range(count)], total_ms, min_ms)

        assert sum(durations) == total_ms
        assert all(d >= 0 for d in durations)


def test_allocation_is_deterministic():
    lengths = [17, 3, 250, 41, 0]
    first = allocate(lengths, 31337, 1200)
    assert all(allocate(lengths, 31337, 1200) == first for _ in range(10))


def test_helpers():
    assert is_floor_feasible(3, 3600, 1200)
    assert not is_floor_feasible(3, 3599, 1200)
    assert split_evenly(4, 10) == [2, 2, 2, 4]
    assert split_evenly(0, 10) == []

    durations = to_scene_durations([100, 200], [4, 7])
    assert [(d.scene_index, d.milliseconds) for d in durations] == [(4, 100), (7, 200)]
