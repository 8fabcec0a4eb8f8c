"""Validated runtime settings for the detection pipeline."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, Mapping


class ConfigurationError(ValueError):
    """Raised when detection settings are inconsistent or out of range."""


SENSITIVITY_PRESETS: dict[str, tuple[float, float]] = {
    "low": (0.5, 0.8),
    "medium": (0.4, 0.6),
    "high": (0.3, 0.3),
}


@dataclass(frozen=True)
class DetectionSettings:
    """Thresholds, caps and cooldowns for decode, rank and stabilize."""

    confidence_threshold: float = 0.4
    announce_threshold: float = 0.6
    min_box_area: float = 0.01
    display_cap: int = 5
    frame_cooldown_ms: int = 1500
    announce_cooldown_ms: int = 3000
    slot_capacity: int = 10
    labels_path: str = "config/labelmap.txt"
    expected_classes: int | None = None
    voice_enabled: bool = True
    sensitivity: str | None = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ``ConfigurationError`` if any setting is invalid."""

        _require_unit_interval("confidence_threshold", self.confidence_threshold)
        _require_unit_interval("announce_threshold", self.announce_threshold)
        _require_unit_interval("min_box_area", self.min_box_area)
        if self.announce_threshold < self.confidence_threshold:
            raise ConfigurationError(
                "announce_threshold "
                f"({self.announce_threshold}) must be >= confidence_threshold "
                f"({self.confidence_threshold})"
            )
        if self.display_cap < 1:
            raise ConfigurationError(f"display_cap must be >= 1, got {self.display_cap}")
        if self.slot_capacity < 1:
            raise ConfigurationError(f"slot_capacity must be >= 1, got {self.slot_capacity}")
        if self.frame_cooldown_ms < 0:
            raise ConfigurationError(
                f"frame_cooldown_ms must be >= 0, got {self.frame_cooldown_ms}"
            )
        if self.announce_cooldown_ms < 0:
            raise ConfigurationError(
                f"announce_cooldown_ms must be >= 0, got {self.announce_cooldown_ms}"
            )
        if self.expected_classes is not None and self.expected_classes < 1:
            raise ConfigurationError(
                f"expected_classes must be >= 1 when set, got {self.expected_classes}"
            )
        if self.sensitivity is not None and self.sensitivity not in SENSITIVITY_PRESETS:
            raise ConfigurationError(
                f"Unknown sensitivity {self.sensitivity!r}; "
                f"expected one of {sorted(SENSITIVITY_PRESETS)}"
            )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "DetectionSettings":
        """Build settings from the ``detection`` section of a config mapping."""

        section = config.get("detection") if isinstance(config, Mapping) else None
        if not isinstance(section, Mapping):
            section = {}
        defaults = cls()

        sensitivity = section.get("sensitivity")
        if sensitivity is not None:
            sensitivity = str(sensitivity).strip().lower()
        confidence_default = defaults.confidence_threshold
        announce_default = defaults.announce_threshold
        if sensitivity in SENSITIVITY_PRESETS:
            confidence_default, announce_default = SENSITIVITY_PRESETS[sensitivity]

        expected_classes = section.get("expected_classes")
        try:
            return cls(
                confidence_threshold=float(
                    section.get("confidence_threshold", confidence_default)
                ),
                announce_threshold=float(section.get("announce_threshold", announce_default)),
                min_box_area=float(section.get("min_box_area", defaults.min_box_area)),
                display_cap=int(section.get("display_cap", defaults.display_cap)),
                frame_cooldown_ms=int(
                    section.get("frame_cooldown_ms", defaults.frame_cooldown_ms)
                ),
                announce_cooldown_ms=int(
                    section.get("announce_cooldown_ms", defaults.announce_cooldown_ms)
                ),
                slot_capacity=int(section.get("slot_capacity", defaults.slot_capacity)),
                labels_path=str(section.get("labels_path", defaults.labels_path)),
                expected_classes=int(expected_classes) if expected_classes is not None else None,
                voice_enabled=bool(section.get("voice_enabled", defaults.voice_enabled)),
                sensitivity=sensitivity,
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid detection setting: {exc}") from exc


def load_detection_settings() -> DetectionSettings:
    """Return settings from the active ``ConfigController``."""

    from config import ConfigController

    config = ConfigController.get_instance().get_config()
    return DetectionSettings.from_config(config)


def _require_unit_interval(name: str, value: float) -> None:
    if not isinstance(value, (int, float)) or math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {value!r}")
