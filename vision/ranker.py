"""Rank decoded detections into a display set and an announcement candidate."""

from __future__ import annotations

from typing import Sequence

from vision.detections import Detection, RankedFrame, frame_result
from vision.settings import DetectionSettings


class Ranker:
    """Order, cap and select the salient detections of one frame."""

    def __init__(self, settings: DetectionSettings) -> None:
        self.settings = settings

    def rank(self, detections: Sequence[Detection]) -> RankedFrame:
        """Return the ranked frame for ``detections`` given in slot order.

        ``sorted`` is stable, so detections with equal confidence keep their
        original slot order.
        """

        ordered = sorted(detections, key=lambda item: item.confidence, reverse=True)
        best = ordered[0] if ordered else None
        top_candidate = best
        if top_candidate is not None and top_candidate.confidence < self.settings.announce_threshold:
            top_candidate = None
        return RankedFrame(
            display_set=frame_result(ordered[: self.settings.display_cap]),
            top_candidate=top_candidate,
            best=best,
        )
