"""Interaction package utilities."""

from interaction.event_bus import Event, EventBus
from interaction.narration import NarrationConfig, NarrationSink, Narrator

__all__ = ["Event", "EventBus", "NarrationConfig", "NarrationSink", "Narrator"]
