"""Cross-frame stabilizer deciding what to display and when to announce.

The stabilizer keeps two independent timing disciplines:

* a frame cooldown that throttles how often a frame is processed at all, and
* a per-label announcement cooldown that lets a newly seen object interrupt
  immediately while suppressing repeats of the same object.

``advance`` is a pure function of ``(state, frame, now_ms)``; ``Stabilizer``
wraps it with a lock so updates are applied one at a time in arrival order.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import threading

from vision.detections import AnnouncementEvent, DisplayUpdate, RankedFrame
from vision.settings import DetectionSettings


@dataclass(frozen=True)
class StabilizerState:
    """Session memory carried between frames."""

    seen_labels: tuple[str, ...] = ()
    total_accepted_count: int = 0
    last_announced_label: str | None = None
    last_announced_at_ms: int | None = None
    last_frame_processed_at_ms: int | None = None

    @property
    def unique_count(self) -> int:
        return len(self.seen_labels)


@dataclass(frozen=True)
class StabilizerOutcome:
    """Result of offering one frame to the stabilizer."""

    state: StabilizerState
    accepted: bool
    display: DisplayUpdate | None = None
    announcement: AnnouncementEvent | None = None


def frame_cooldown_elapsed(
    state: StabilizerState, now_ms: int, settings: DetectionSettings
) -> bool:
    """Return whether a frame at ``now_ms`` may be processed."""

    last = state.last_frame_processed_at_ms
    if last is None:
        return True
    return (now_ms - last) >= settings.frame_cooldown_ms


def should_announce(
    state: StabilizerState, label: str, now_ms: int, settings: DetectionSettings
) -> bool:
    """Return whether ``label`` passes the announcement cooldown."""

    if label != state.last_announced_label or state.last_announced_at_ms is None:
        return True
    return (now_ms - state.last_announced_at_ms) >= settings.announce_cooldown_ms


def advance(
    state: StabilizerState,
    frame: RankedFrame,
    now_ms: int,
    settings: DetectionSettings,
) -> StabilizerOutcome:
    """Apply one ranked frame to ``state`` and return the outcome."""

    if not frame_cooldown_elapsed(state, now_ms, settings):
        return StabilizerOutcome(state=state, accepted=False)

    seen = list(state.seen_labels)
    total = state.total_accepted_count
    for detection in frame.display_set:
        if detection.confidence < settings.confidence_threshold:
            continue
        if detection.label not in seen:
            seen.append(detection.label)
        total += 1

    announcement: AnnouncementEvent | None = None
    last_label = state.last_announced_label
    last_at = state.last_announced_at_ms
    candidate = frame.top_candidate
    if candidate is not None and should_announce(state, candidate.label, now_ms, settings):
        announcement = AnnouncementEvent(
            label=candidate.label,
            confidence=candidate.confidence,
            timestamp_ms=now_ms,
        )
        last_label = candidate.label
        last_at = now_ms

    new_state = replace(
        state,
        seen_labels=tuple(seen),
        total_accepted_count=total,
        last_announced_label=last_label,
        last_announced_at_ms=last_at,
        last_frame_processed_at_ms=now_ms,
    )
    display = DisplayUpdate(
        frame=frame.display_set,
        unique_count=new_state.unique_count,
        total_accepted_count=new_state.total_accepted_count,
        history=new_state.seen_labels,
        timestamp_ms=now_ms,
    )
    return StabilizerOutcome(
        state=new_state,
        accepted=True,
        display=display,
        announcement=announcement,
    )


class Stabilizer:
    """Holds the session state and serializes updates to it."""

    def __init__(self, settings: DetectionSettings) -> None:
        self.settings = settings
        self._lock = threading.Lock()
        self._state = StabilizerState()

    @property
    def state(self) -> StabilizerState:
        with self._lock:
            return self._state

    def update(self, frame: RankedFrame, now_ms: int) -> StabilizerOutcome:
        """Apply ``frame`` under the lock and store the resulting state."""

        with self._lock:
            outcome = advance(self._state, frame, now_ms, self.settings)
            self._state = outcome.state
        return outcome

    def reset(self) -> StabilizerState:
        """Clear session state and return the state that was discarded."""

        with self._lock:
            previous = self._state
            self._state = StabilizerState()
        return previous
