"""Scene Timing Allocator - splits a narration total into per-scene durations."""

from typing import Iterable, Sequence

from app.models.schemas import SceneDuration


def count_non_whitespace(text: str) -> int:
    """Number of characters in ``text`` that are not whitespace."""
    return sum(1 for ch in (text or "") if not ch.isspace())


def scene_weights(texts: Iterable[str]) -> list[int]:
    """
    Weight of every scene: its non-whitespace character count, never below 1.

    Args:
        texts: Scene texts in scene order

    Returns:
        One positive weight per scene
    """
    return [max(1, count_non_whitespace(text)) for text in texts]


def is_floor_feasible(scene_count: int, total_ms: int, min_ms: int) -> bool:
    """Whether every scene can receive ``min_ms`` out of ``total_ms``."""
    return scene_count * min_ms <= total_ms


def split_evenly(scene_count: int, total_ms: int) -> list[int]:
    """Even split of ``total_ms``; the last scene absorbs the remainder."""
    if scene_count <= 0:
        return []
    share = total_ms // scene_count
    durations = [share] * scene_count
    durations[-1] += total_ms - share * scene_count
    return durations


def allocate(scene_text_lengths: Sequence[int], total_ms: int, min_ms: int) -> list[int]:
    """
    Distribute ``total_ms`` over scenes proportionally to their text length.

    The result always sums to exactly ``total_ms``. When
    ``len(scene_text_lengths) * min_ms <= total_ms`` every scene also receives
    at least ``min_ms``.

    When the floor cannot be honored for every scene, the floor is dropped and
    the total is split evenly (``total_ms // N`` each, remainder on the last
    scene), so no duration is ever negative.

    Deficit recovery caps each take at the deficit still outstanding, so the
    overshoot of the rounded-up takes stays on the scenes above the floor
    instead of landing on the last scene.

    Args:
        scene_text_lengths: Text length (weight) per scene, in scene order
        total_ms: Total narration duration in milliseconds
        min_ms: Minimum duration per scene in milliseconds

    Returns:
        Duration in milliseconds for every scene

    Raises:
        ValueError: If ``total_ms`` or ``min_ms`` is negative
    """
    if total_ms < 0:
        raise ValueError(f"total_ms must be >= 0, got {total_ms}")
    if min_ms < 0:
        raise ValueError(f"min_ms must be >= 0, got {min_ms}")

    scene_count = len(scene_text_lengths)
    if scene_count == 0:
        return []
    if scene_count == 1:
        return [total_ms]

    if not is_floor_feasible(scene_count, total_ms, min_ms):
        return split_evenly(scene_count, total_ms)

    weights = [max(1, int(length)) for length in scene_text_lengths]
    total_weight = sum(weights)

    # Proportional first pass; floor division leaves a residual for the last scene
    durations = [total_ms * weight // total_weight for weight in weights]
    durations[-1] += total_ms - sum(durations)

    deficit = 0
    for i, duration in enumerate(durations):
        if duration < min_ms:
            deficit += min_ms - duration
            durations[i] = min_ms

    if deficit > 0:
        surpluses = [max(0, duration - min_ms) for duration in durations]
        total_surplus = sum(surpluses)
        remaining = deficit
        if total_surplus > 0:
            for i, surplus in enumerate(surpluses):
                if surplus == 0 or remaining == 0:
                    continue
                take = -(-deficit * surplus // total_surplus)
                take = min(take, surplus, remaining)
                durations[i] -= take
                remaining -= take

        # Rounding residual only; the last scene may dip under the floor here
        if remaining > 0:
            durations[-1] -= remaining

    durations[-1] += total_ms - sum(durations)
    return durations


def allocate_for_texts(texts: Sequence[str], total_ms: int, min_ms: int) -> list[int]:
    """Convenience wrapper: weights from scene texts, then :func:`allocate`."""
    return allocate(scene_weights(texts), total_ms, min_ms)


def to_scene_durations(durations_ms: Sequence[int], scene_indexes: Sequence[int]) -> list[SceneDuration]:
    """Pair allocated durations with their scene indexes."""
    return [
        SceneDuration(scene_index=index, milliseconds=duration)
        for index, duration in zip(scene_indexes, durations_ms)
    ]
