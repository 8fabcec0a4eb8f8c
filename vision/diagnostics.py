"""Diagnostics routines for the detection pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from vision.labels import LabelTable, LabelTableError
from vision.settings import ConfigurationError, DetectionSettings


def probe(
    config: Mapping[str, Any] | None = None,
    base_dir: Path | None = None,
) -> DiagnosticResult:
    """Validate detection settings and load the label table.

    Args:
        config: Optional config mapping; defaults to the active controller.
        base_dir: Directory relative label paths are resolved against.

    Returns:
        Diagnostic result indicating pipeline readiness.
    """

    name = "vision"
    if config is None:
        from config import ConfigController

        config = ConfigController.get_instance().get_config()

    try:
        settings = DetectionSettings.from_config(config)
    except ConfigurationError as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Invalid detection settings: {exc}",
        )

    labels_path = Path(settings.labels_path)
    if base_dir is not None and not labels_path.is_absolute():
        labels_path = base_dir / labels_path
    try:
        labels = LabelTable.from_file(labels_path, expected_classes=settings.expected_classes)
    except LabelTableError as exc:
        return DiagnosticResult(name=name, status=DiagnosticStatus.FAIL, details=str(exc))

    if settings.expected_classes is None:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.WARN,
            details=f"{len(labels)} labels loaded; expected_classes not set, count unchecked",
        )
    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=(
            f"{len(labels)} labels loaded, thresholds "
            f"{settings.confidence_threshold:.2f}/{settings.announce_threshold:.2f}"
        ),
    )
