"""Label table mapping detector class ids to names.

Index 0 is reserved for the background class (``???`` in COCO label maps) and
is never surfaced as a detection.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from core.logging import logger


BACKGROUND_LABEL = "???"


class LabelTableError(ValueError):
    """Raised when a label table cannot be loaded or does not match the model."""


class LabelTable:
    """Immutable ordered list of labels indexed by class id."""

    def __init__(self, labels: Iterable[str], expected_classes: int | None = None) -> None:
        self._labels = tuple(str(label).strip() for label in labels)
        if not self._labels:
            raise LabelTableError("Label table is empty")
        if expected_classes is not None and len(self._labels) != expected_classes + 1:
            raise LabelTableError(
                f"Label table has {len(self._labels)} entries but the model declares "
                f"{expected_classes} classes plus background"
            )

    @classmethod
    def from_file(cls, path: Path | str, expected_classes: int | None = None) -> "LabelTable":
        """Load labels from a ``labelmap.txt`` style file, one label per line."""

        label_path = Path(path).expanduser()
        try:
            with label_path.open("r", encoding="utf-8") as file:
                lines = [line.rstrip("\r\n") for line in file]
        except OSError as exc:
            raise LabelTableError(f"Failed to read label table at {label_path}: {exc}") from exc

        # Trailing blank lines are editor artifacts, interior blanks keep their index.
        while lines and not lines[-1].strip():
            lines.pop()
        table = cls(lines, expected_classes=expected_classes)
        logger.info("Loaded %d labels from %s", len(table), label_path)
        return table

    def __len__(self) -> int:
        return len(self._labels)

    def __getitem__(self, index: int) -> str:
        return self._labels[index]

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    def resolve(self, class_index: int) -> str | None:
        """Return the label for a foreground class id, or ``None``."""

        if class_index <= 0 or class_index >= len(self._labels):
            return None
        label = self._labels[class_index]
        if not label or label == BACKGROUND_LABEL:
            return None
        return label
