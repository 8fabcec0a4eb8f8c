"""Detection session runtime: decode, rank and stabilize raw frames."""

from __future__ import annotations

import threading
import time
from typing import Protocol

from core.logging import logger
from vision.decoder import FrameDecoder
from vision.detections import (
    AnnouncementEvent,
    DisplayUpdate,
    RawDetectionBatch,
    SessionSummary,
)
from vision.labels import LabelTable
from vision.ranker import Ranker
from vision.settings import DetectionSettings, load_detection_settings
from vision.stabilizer import Stabilizer, StabilizerOutcome


class EventSink(Protocol):
    """Consumer of pipeline output such as a display or a speech synthesizer."""

    def on_session_started(self) -> None: ...

    def on_display(self, update: DisplayUpdate) -> None: ...

    def on_announcement(self, event: AnnouncementEvent) -> None: ...

    def on_session_stopped(self, summary: SessionSummary) -> None: ...


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class DetectionPipeline:
    """Owns the per-session stabilizer and fans output out to sinks.

    Frames submitted while no session is active are ignored. Sinks are called
    after all pipeline state has been updated; a failing sink is logged and
    never interrupts processing.
    """

    def __init__(self, settings: DetectionSettings, labels: LabelTable) -> None:
        self.settings = settings
        self.labels = labels
        self.decoder = FrameDecoder(settings, labels)
        self.ranker = Ranker(settings)
        self.stabilizer = Stabilizer(settings)

        self._lock = threading.RLock()
        self._active = False
        self._sinks: list[EventSink] = []
        self._frames_received = 0
        self._frames_accepted = 0
        self._frames_dropped = 0
        self._frames_ignored = 0
        self._announcements = 0
        self._sessions_started = 0

    @classmethod
    def from_config(cls) -> "DetectionPipeline":
        """Build a pipeline from the active ``ConfigController``."""

        settings = load_detection_settings()
        labels = LabelTable.from_file(
            settings.labels_path, expected_classes=settings.expected_classes
        )
        logger.info(
            "[PIPELINE] Initialized (labels=%d confidence=%.2f announce=%.2f "
            "frame_cooldown_ms=%d announce_cooldown_ms=%d)",
            len(labels),
            settings.confidence_threshold,
            settings.announce_threshold,
            settings.frame_cooldown_ms,
            settings.announce_cooldown_ms,
        )
        return cls(settings, labels)

    def subscribe(self, sink: EventSink) -> None:
        with self._lock:
            if sink not in self._sinks:
                self._sinks.append(sink)

    def unsubscribe(self, sink: EventSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def is_active(self) -> bool:
        with self._lock:
            return self._active

    def start_session(self) -> bool:
        """Start a detection session with fresh state (safe to call repeatedly)."""

        with self._lock:
            if self._active:
                return False
            self.stabilizer.reset()
            self._active = True
            self._sessions_started += 1
            sinks = list(self._sinks)

        logger.info("[PIPELINE] Detection session started")
        for sink in sinks:
            self._notify(sink.on_session_started)
        return True

    def stop_session(self) -> SessionSummary | None:
        """Stop the active session, clear its state and return its statistics."""

        with self._lock:
            if not self._active:
                return None
            self._active = False
            final_state = self.stabilizer.reset()
            sinks = list(self._sinks)

        summary = SessionSummary(
            total_accepted_count=final_state.total_accepted_count,
            unique_count=final_state.unique_count,
            labels=final_state.seen_labels,
        )
        logger.info(
            "[PIPELINE] Detection session stopped (total=%d unique=%d)",
            summary.total_accepted_count,
            summary.unique_count,
        )
        for sink in sinks:
            self._notify(sink.on_session_stopped, summary)
        return summary

    def process(
        self, batch: RawDetectionBatch, now_ms: int | None = None
    ) -> StabilizerOutcome | None:
        """Run one raw frame through the pipeline.

        Returns ``None`` when no session is active, otherwise the stabilizer
        outcome (``accepted`` is false when the frame cooldown dropped it).
        """

        if now_ms is None:
            now_ms = monotonic_ms()

        with self._lock:
            self._frames_received += 1
            if not self._active:
                self._frames_ignored += 1
                return None
            session_id = self._sessions_started

        detections = self.decoder.decode(batch)
        ranked = self.ranker.rank(detections)

        with self._lock:
            if not self._active or self._sessions_started != session_id:
                self._frames_ignored += 1
                return None
            outcome = self.stabilizer.update(ranked, now_ms)
            if outcome.accepted:
                self._frames_accepted += 1
            else:
                self._frames_dropped += 1
            if outcome.announcement is not None:
                self._announcements += 1
            sinks = list(self._sinks)

        if not outcome.accepted:
            logger.debug("[PIPELINE] Frame at %dms dropped by frame cooldown", now_ms)
            return outcome

        logger.debug(
            "[PIPELINE] Frame at %dms: %d valid, display=%s",
            now_ms,
            len(detections),
            ", ".join(
                f"{item.label}:{item.confidence:.2f}" for item in ranked.display_set
            ) or "none",
        )
        for sink in sinks:
            if outcome.display is not None:
                self._notify(sink.on_display, outcome.display)
            if outcome.announcement is not None:
                self._notify(sink.on_announcement, outcome.announcement)
        return outcome

    def get_runtime_status(self) -> dict[str, int | str]:
        """Return pipeline counters for debugging and diagnostics."""

        state = self.stabilizer.state
        with self._lock:
            return {
                "active": int(self._active),
                "labels": len(self.labels),
                "sessions_started": self._sessions_started,
                "frames_received": self._frames_received,
                "frames_accepted": self._frames_accepted,
                "frames_dropped": self._frames_dropped,
                "frames_ignored": self._frames_ignored,
                "announcements": self._announcements,
                "total_detections": state.total_accepted_count,
                "unique_objects": state.unique_count,
                "last_announced": state.last_announced_label or "",
            }

    def _notify(self, callback, *args) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("[PIPELINE] Event sink callback failed")
