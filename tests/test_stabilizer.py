"""Tests for cross-frame stabilization and announcement cooldowns."""

from __future__ import annotations

from vision.detections import Detection
from vision.ranker import Ranker
from vision.settings import DetectionSettings
from vision.stabilizer import Stabilizer, StabilizerState, advance


BOX = (0.1, 0.1, 0.9, 0.9)
SETTINGS = DetectionSettings(
    confidence_threshold=0.4,
    announce_threshold=0.6,
    frame_cooldown_ms=1500,
    announce_cooldown_ms=3000,
)


def _frame(*items: tuple[str, float], settings: DetectionSettings = SETTINGS):
    detections = [
        Detection(class_index=index + 1, label=label, confidence=confidence, box=BOX, slot=index)
        for index, (label, confidence) in enumerate(items)
    ]
    return Ranker(settings).rank(detections)


def test_first_frame_of_session_is_never_blocked() -> None:
    outcome = advance(StabilizerState(), _frame(("chair", 0.9)), 0, SETTINGS)

    assert outcome.accepted
    assert outcome.announcement is not None
    assert outcome.announcement.label == "chair"
    assert outcome.announcement.confidence == 0.9
    assert outcome.state.last_announced_label == "chair"
    assert outcome.state.last_announced_at_ms == 0
    assert outcome.state.last_frame_processed_at_ms == 0


def test_frame_inside_cooldown_changes_nothing() -> None:
    frame = _frame(("bottle", 0.7))
    first = advance(StabilizerState(), frame, 10_000, SETTINGS)

    second = advance(first.state, frame, 10_500, SETTINGS)

    assert not second.accepted
    assert second.state == first.state
    assert second.display is None
    assert second.announcement is None


def test_frame_exactly_at_cooldown_is_accepted() -> None:
    first = advance(StabilizerState(), _frame(("cup", 0.5)), 1000, SETTINGS)

    assert advance(first.state, _frame(("cup", 0.5)), 2499, SETTINGS).accepted is False
    assert advance(first.state, _frame(("cup", 0.5)), 2500, SETTINGS).accepted is True


def test_clock_going_backwards_is_treated_as_cooldown() -> None:
    first = advance(StabilizerState(), _frame(("cup", 0.5)), 5000, SETTINGS)

    assert advance(first.state, _frame(("cup", 0.5)), 1000, SETTINGS).accepted is False


def test_same_label_suppressed_until_announce_cooldown() -> None:
    t0 = 20_000
    state = StabilizerState(last_announced_label="chair", last_announced_at_ms=t0)

    before = advance(state, _frame(("chair", 0.9)), t0 + 3000 - 1, SETTINGS)
    at = advance(state, _frame(("chair", 0.9)), t0 + 3000, SETTINGS)

    assert before.accepted and before.announcement is None
    assert before.state.last_announced_at_ms == t0
    assert at.announcement is not None
    assert at.state.last_announced_at_ms == t0 + 3000


def test_new_label_interrupts_inside_cooldown() -> None:
    t0 = 20_000
    state = StabilizerState(last_announced_label="chair", last_announced_at_ms=t0)

    outcome = advance(state, _frame(("bottle", 0.8)), t0 + 1, SETTINGS)

    assert outcome.announcement is not None
    assert outcome.announcement.label == "bottle"
    assert outcome.state.last_announced_label == "bottle"


def test_statistics_count_display_set_above_threshold() -> None:
    settings = DetectionSettings(confidence_threshold=0.4, announce_threshold=0.6, display_cap=3)
    frame = _frame(
        ("person", 0.9), ("chair", 0.7), ("person", 0.65), ("cup", 0.5), settings=settings
    )

    outcome = advance(StabilizerState(), frame, 0, settings)

    assert outcome.state.total_accepted_count == 3
    assert outcome.state.seen_labels == ("person", "chair")
    assert outcome.display is not None
    assert outcome.display.unique_count == 2
    assert outcome.display.total_accepted_count == 3
    assert outcome.display.history == ("person", "chair")


def test_detections_below_confidence_threshold_are_not_counted() -> None:
    outcome = advance(StabilizerState(), _frame(("chair", 0.7), ("cup", 0.3)), 0, SETTINGS)

    assert outcome.state.total_accepted_count == 1
    assert outcome.state.seen_labels == ("chair",)


def test_statistics_accumulate_across_frames() -> None:
    first = advance(StabilizerState(), _frame(("chair", 0.7)), 0, SETTINGS)
    second = advance(first.state, _frame(("chair", 0.7), ("cup", 0.5)), 2000, SETTINGS)

    assert second.state.total_accepted_count == 3
    assert second.state.seen_labels == ("chair", "cup")


def test_demoted_candidate_updates_display_without_announcing() -> None:
    outcome = advance(StabilizerState(), _frame(("cup", 0.5)), 0, SETTINGS)

    assert outcome.accepted
    assert outcome.announcement is None
    assert outcome.display is not None and outcome.display.frame.labels == ["cup"]
    assert outcome.state.total_accepted_count == 1


def test_empty_frame_keeps_last_announcement() -> None:
    state = StabilizerState(last_announced_label="chair", last_announced_at_ms=100)

    outcome = advance(state, _frame(), 5000, SETTINGS)

    assert outcome.accepted
    assert outcome.announcement is None
    assert outcome.state.last_announced_label == "chair"
    assert outcome.state.last_announced_at_ms == 100
    assert outcome.state.last_frame_processed_at_ms == 5000


def test_persistent_bottle_frames_500ms_apart() -> None:
    stabilizer = Stabilizer(SETTINGS)

    first = stabilizer.update(_frame(("bottle", 0.7)), 0)
    state_after_first = stabilizer.state
    second = stabilizer.update(_frame(("bottle", 0.7)), 500)

    assert first.announcement is not None
    assert not second.accepted
    assert second.announcement is None
    assert stabilizer.state == state_after_first


def test_reset_clears_every_field() -> None:
    stabilizer = Stabilizer(SETTINGS)
    stabilizer.update(_frame(("bottle", 0.7), ("cup", 0.5)), 1000)

    previous = stabilizer.reset()

    assert previous.total_accepted_count == 2
    assert stabilizer.state == StabilizerState()
    state = stabilizer.state
    assert state.seen_labels == ()
    assert state.total_accepted_count == 0
    assert state.last_announced_label is None
    assert state.last_announced_at_ms is None
    assert state.last_frame_processed_at_ms is None
    assert stabilizer.update(_frame(("bottle", 0.7)), 1001).accepted


def test_advance_does_not_mutate_input_state() -> None:
    state = StabilizerState()

    advance(state, _frame(("chair", 0.9)), 0, SETTINGS)

    assert state == StabilizerState()
