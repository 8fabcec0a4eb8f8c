"""Detection value types shared by the decoder, ranker and stabilizer.

Boxes are normalized to the model input and represented as
``(y_min, x_min, y_max, x_max)`` with each value in the inclusive range
``[0.0, 1.0]`` and ``(0, 0)`` at the top-left corner.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence


@dataclass(frozen=True)
class Detection:
    """Single validated object detection for one frame."""

    class_index: int
    label: str
    confidence: float
    box: tuple[float, float, float, float]
    slot: int = 0

    @property
    def area(self) -> float:
        y_min, x_min, y_max, x_max = self.box
        return (y_max - y_min) * (x_max - x_min)


@dataclass(frozen=True)
class RawDetectionBatch:
    """Raw SSD output tensors for one frame.

    ``locations`` holds ``N`` rows of four box coordinates, ``classes`` and
    ``scores`` hold ``N`` floats and ``count`` is the detector's declared
    number of valid slots (a float by detector convention).
    """

    locations: Any
    classes: Any
    scores: Any
    count: Any


@dataclass(frozen=True)
class FrameResult:
    """Display-ready detections sorted by descending confidence."""

    detections: tuple[Detection, ...] = ()

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self):
        return iter(self.detections)

    @property
    def labels(self) -> list[str]:
        return [item.label for item in self.detections]


@dataclass(frozen=True)
class RankedFrame:
    """Ranker output: display set, announcement candidate and raw best."""

    display_set: FrameResult
    top_candidate: Detection | None
    best: Detection | None = None


@dataclass(frozen=True)
class AnnouncementEvent:
    """Narration request for the most salient object in a frame."""

    label: str
    confidence: float
    timestamp_ms: int = 0


@dataclass(frozen=True)
class DisplayUpdate:
    """Frame result plus the session statistics shown alongside it."""

    frame: FrameResult
    unique_count: int
    total_accepted_count: int
    history: tuple[str, ...] = ()
    timestamp_ms: int = 0

    @property
    def average_confidence(self) -> float:
        if not self.frame.detections:
            return 0.0
        total = sum(item.confidence for item in self.frame.detections)
        return total / len(self.frame.detections)


@dataclass(frozen=True)
class SessionSummary:
    """Statistics reported when a detection session stops."""

    total_accepted_count: int
    unique_count: int
    labels: tuple[str, ...] = field(default_factory=tuple)


def frame_result(detections: Sequence[Detection]) -> FrameResult:
    """Return a ``FrameResult`` wrapping ``detections`` in the given order."""

    return FrameResult(detections=tuple(detections))
