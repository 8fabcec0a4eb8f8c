"""Phrasing policy and event sink for spoken and on-screen narration."""

from __future__ import annotations

from dataclasses import dataclass

from core.logging import log_announcement, logger
from interaction.event_bus import Event, EventBus
from vision.detections import AnnouncementEvent, DisplayUpdate, SessionSummary


HISTORY_DISPLAY_LIMIT = 5


@dataclass(frozen=True)
class NarrationConfig:
    """Settings for how announcements are worded and delivered."""

    voice_enabled: bool = True
    strong_confidence: float = 0.8
    moderate_confidence: float = 0.6
    announcement_ttl_s: float = 5.0


class Narrator:
    """Turns pipeline output into speech phrases and display text."""

    def __init__(self, config: NarrationConfig | None = None) -> None:
        self.config = config or NarrationConfig()

    def phrase_announcement(self, event: AnnouncementEvent) -> str:
        if event.confidence >= self.config.strong_confidence:
            return f"{event.label} detected"
        if event.confidence >= self.config.moderate_confidence:
            return f"I see {event.label}"
        return event.label

    def phrase_session_started(self) -> str:
        return "Object detection started. Point camera at objects."

    def phrase_session_stopped(self, summary: SessionSummary) -> str:
        noun = "object" if summary.total_accepted_count == 1 else "objects"
        return f"Detection stopped. Detected {summary.total_accepted_count} {noun}."

    def format_display(self, update: DisplayUpdate) -> str:
        if not update.frame.detections:
            if update.total_accepted_count == 0:
                return "No objects detected\nPoint camera at objects"
            return "No confident detections"

        lines = ["Detected Objects:", ""]
        for detection in update.frame.detections:
            lines.append(f"• {detection.label}: {detection.confidence * 100:.1f}%")
        lines.append("")
        lines.append(
            f"Detected {len(update.frame)} objects "
            f"(Avg confidence: {update.average_confidence * 100:.1f}%)"
        )
        lines.append(
            f"Session: {update.total_accepted_count} total, {update.unique_count} unique"
        )
        if update.history:
            lines.append("History: " + ", ".join(update.history[:HISTORY_DISPLAY_LIMIT]))
        return "\n".join(lines)


class NarrationSink:
    """Event sink that publishes display text and speech phrases to a bus."""

    def __init__(self, event_bus: EventBus, narrator: Narrator | None = None) -> None:
        self.event_bus = event_bus
        self.narrator = narrator or Narrator()

    @property
    def voice_enabled(self) -> bool:
        return self.narrator.config.voice_enabled

    def on_session_started(self) -> None:
        self._speak(self.narrator.phrase_session_started(), priority="normal")

    def on_display(self, update: DisplayUpdate) -> None:
        self.event_bus.publish(
            Event(
                kind="display",
                content=self.narrator.format_display(update),
                priority="low",
                metadata={
                    "labels": update.frame.labels,
                    "unique_count": update.unique_count,
                    "total_accepted_count": update.total_accepted_count,
                },
                dedupe_key="display",
            ),
            coalesce=True,
        )

    def on_announcement(self, event: AnnouncementEvent) -> None:
        phrase = self.narrator.phrase_announcement(event)
        log_announcement(event.label, event.confidence, phrase)
        self._speak(
            phrase,
            priority="high",
            metadata={"label": event.label, "confidence": event.confidence},
            ttl_s=self.narrator.config.announcement_ttl_s,
        )

    def on_session_stopped(self, summary: SessionSummary) -> None:
        self._speak(self.narrator.phrase_session_stopped(summary), priority="normal")

    def _speak(
        self,
        phrase: str,
        *,
        priority: str,
        metadata: dict[str, object] | None = None,
        ttl_s: float | None = None,
    ) -> None:
        if not self.voice_enabled:
            logger.debug("[NARRATION] Voice disabled; skipping %r", phrase)
            return
        self.event_bus.publish(
            Event(
                kind="speech",
                content=phrase,
                priority=priority,
                metadata=metadata or {},
                ttl_s=ttl_s,
            )
        )
