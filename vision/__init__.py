"""Vision package exports."""

from vision.detections import (
    AnnouncementEvent,
    Detection,
    DisplayUpdate,
    FrameResult,
    RankedFrame,
    RawDetectionBatch,
    SessionSummary,
)
from vision.decoder import FrameDecoder
from vision.labels import LabelTable, LabelTableError
from vision.pipeline import DetectionPipeline
from vision.ranker import Ranker
from vision.settings import ConfigurationError, DetectionSettings
from vision.stabilizer import Stabilizer, StabilizerOutcome, StabilizerState, advance

__all__ = [
    "AnnouncementEvent",
    "ConfigurationError",
    "Detection",
    "DetectionPipeline",
    "DetectionSettings",
    "DisplayUpdate",
    "FrameDecoder",
    "FrameResult",
    "LabelTable",
    "LabelTableError",
    "RankedFrame",
    "Ranker",
    "RawDetectionBatch",
    "SessionSummary",
    "Stabilizer",
    "StabilizerOutcome",
    "StabilizerState",
    "advance",
]
