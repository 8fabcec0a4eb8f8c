"""Decode raw SSD output tensors into validated detections."""

from __future__ import annotations

import math
from typing import Any

import numpy as np

from core.logging import logger
from vision.detections import Detection, RawDetectionBatch
from vision.labels import LabelTable
from vision.settings import DetectionSettings


class FrameDecoder:
    """Stateless converter from one raw tensor batch to candidate detections.

    Malformed slots (short rows, NaN values, out-of-range class ids) are
    skipped; ``decode`` never raises for bad input and degrades to returning
    fewer detections.
    """

    def __init__(self, settings: DetectionSettings, labels: LabelTable) -> None:
        self.settings = settings
        self.labels = labels
        self.capacity = settings.slot_capacity

    def decode(self, batch: RawDetectionBatch) -> list[Detection]:
        """Return valid detections in slot order."""

        locations = self._as_array(batch.locations, ndim=2)
        classes = self._as_array(batch.classes, ndim=1)
        scores = self._as_array(batch.scores, ndim=1)

        available = min(len(locations), len(classes), len(scores))
        slot_count = min(self._declared_count(batch.count), self.capacity, available)

        detections: list[Detection] = []
        for slot in range(slot_count):
            detection = self._decode_slot(slot, locations[slot], classes[slot], scores[slot])
            if detection is not None:
                detections.append(detection)
        return detections

    def _decode_slot(
        self,
        slot: int,
        location: Any,
        raw_class: Any,
        raw_score: Any,
    ) -> Detection | None:
        confidence = self._to_finite_float(raw_score)
        if confidence is None:
            logger.debug("[DECODER] slot=%d skipped: non-finite score", slot)
            return None
        if confidence < self.settings.confidence_threshold:
            return None
        confidence = min(1.0, confidence)

        class_value = self._to_finite_float(raw_class)
        if class_value is None:
            logger.debug("[DECODER] slot=%d skipped: non-finite class id", slot)
            return None
        class_index = int(round(class_value))
        label = self.labels.resolve(class_index)
        if label is None:
            logger.debug("[DECODER] slot=%d skipped: class id %d not a foreground label", slot, class_index)
            return None

        box = self._extract_box(location)
        if box is None:
            logger.debug("[DECODER] slot=%d skipped: malformed box for %s", slot, label)
            return None
        y_min, x_min, y_max, x_max = box
        if y_max <= y_min or x_max <= x_min:
            logger.debug("[DECODER] slot=%d skipped: degenerate box for %s", slot, label)
            return None
        if (y_max - y_min) * (x_max - x_min) < self.settings.min_box_area:
            logger.debug("[DECODER] slot=%d skipped: box too small for %s", slot, label)
            return None

        return Detection(
            class_index=class_index,
            label=label,
            confidence=confidence,
            box=box,
            slot=slot,
        )

    def _declared_count(self, raw_count: Any) -> int:
        count_array = self._as_array(raw_count, ndim=0)
        if count_array.size == 0:
            return 0
        count = self._to_finite_float(count_array.reshape(-1)[0])
        if count is None or count <= 0.0:
            return 0
        return int(round(count))

    def _extract_box(self, location: Any) -> tuple[float, float, float, float] | None:
        try:
            row = np.asarray(location, dtype=object).reshape(-1)
        except (TypeError, ValueError):
            return None
        if row.size < 4:
            return None
        values = []
        for raw in row[:4]:
            value = self._to_finite_float(raw)
            if value is None:
                return None
            values.append(max(0.0, min(1.0, value)))
        return (values[0], values[1], values[2], values[3])

    def _as_array(self, value: Any, ndim: int) -> np.ndarray:
        """Coerce ``value`` to an array, dropping a leading batch axis of one."""

        try:
            array = np.asarray(value, dtype=float)
        except (TypeError, ValueError):
            if ndim != 2:
                logger.debug("[DECODER] could not coerce tensor to array; treating as empty")
                return np.empty((0,) * max(ndim, 1))
            # Ragged location rows; each slot is validated on its own.
            try:
                array = np.asarray(value, dtype=object)
            except (TypeError, ValueError):
                return np.empty((0, 4))
            return array if array.ndim >= 1 else np.empty((0, 4))
        if ndim == 0:
            return array
        if array.ndim == 0:
            return np.empty((0,) * ndim)
        while array.ndim > ndim and array.shape[0] == 1:
            array = array[0]
        return array

    def _to_finite_float(self, value: Any) -> float | None:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return number
