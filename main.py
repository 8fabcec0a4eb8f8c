"""Command-line entry point for the detection narration pipeline."""

from __future__ import annotations

import argparse
import json
import math
from pathlib import Path
import sys
from typing import Iterator

from config import ConfigController
from core.logging import (
    configure_logging,
    disable_file_logging,
    log_error,
    log_warning,
    logger,
)
from interaction.event_bus import EventBus
from interaction.narration import NarrationConfig, NarrationSink, Narrator
from vision.detections import RawDetectionBatch
from vision.labels import LabelTableError
from vision.pipeline import DetectionPipeline, monotonic_ms
from vision.settings import ConfigurationError


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Raw command-line arguments.

    Returns:
        Parsed arguments namespace.
    """

    parser = argparse.ArgumentParser(
        description="Stabilize raw object-detector output into narration events."
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Run diagnostics probes and exit.",
    )
    parser.add_argument(
        "--replay",
        type=Path,
        help="Replay recorded raw detection batches from a JSON-lines file.",
    )
    return parser.parse_args(argv)


def iter_recorded_batches(path: Path) -> Iterator[tuple[int | None, RawDetectionBatch]]:
    """Yield ``(timestamp_ms, batch)`` pairs from a JSON-lines recording.

    Lines that are blank, not JSON objects, or carry a non-finite
    ``timestamp_ms`` are skipped with a warning. A missing timestamp yields
    ``None``.
    """

    with path.open("r", encoding="utf-8") as file:
        for line_number, line in enumerate(file, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                log_warning(f"Skipping line {line_number} of {path}: {exc}")
                continue
            if not isinstance(record, dict):
                log_warning(f"Skipping line {line_number} of {path}: expected an object")
                continue
            timestamp = record.get("timestamp_ms")
            if timestamp is not None and not _is_finite_number(timestamp):
                log_warning(
                    f"Skipping line {line_number} of {path}: bad timestamp_ms {timestamp!r}"
                )
                continue
            yield (
                int(timestamp) if timestamp is not None else None,
                RawDetectionBatch(
                    locations=record.get("locations", []),
                    classes=record.get("classes", []),
                    scores=record.get("scores", []),
                    count=record.get("count", 0),
                ),
            )


def _is_finite_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def run_diagnostics_report() -> int:
    from config.diagnostics import probe as config_probe
    from core.diagnostics import probe as core_probe
    from diagnostics.runner import format_results, run_diagnostics
    from vision.diagnostics import probe as vision_probe

    results = run_diagnostics([config_probe, core_probe, vision_probe])
    print(format_results(results))
    return 1 if any(result.failed for result in results) else 0


def replay(pipeline: DetectionPipeline, path: Path, event_bus: EventBus) -> None:
    """Feed a recording through ``pipeline`` and print the narration it produces.

    Lines without a timestamp reuse the last recorded one so they cannot push
    the clock past later recorded frames; before any recorded timestamp the
    monotonic clock is used.
    """

    last_timestamp_ms: int | None = None
    pipeline.start_session()
    try:
        for timestamp_ms, batch in iter_recorded_batches(path):
            if timestamp_ms is None:
                now_ms = last_timestamp_ms if last_timestamp_ms is not None else monotonic_ms()
            else:
                now_ms = last_timestamp_ms = timestamp_ms
            pipeline.process(batch, now_ms=now_ms)
            _print_events(event_bus)
    finally:
        pipeline.stop_session()
        _print_events(event_bus)


def _print_events(event_bus: EventBus) -> None:
    for event in event_bus.drain():
        if event.kind == "speech":
            print(f"[speech] {event.content}")
        else:
            print(event.content)
            print()


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Process exit code.
    """

    if argv is None:
        argv = sys.argv[1:]

    args = parse_args(argv)
    config = ConfigController.get_instance().get_config()
    log_file_path = configure_logging(config)
    if log_file_path is not None:
        logger.info("Writing logs to %s", log_file_path)
    try:
        return _run(args)
    finally:
        disable_file_logging()


def _run(args: argparse.Namespace) -> int:
    if args.diagnostics:
        return run_diagnostics_report()

    try:
        pipeline = DetectionPipeline.from_config()
    except (ConfigurationError, LabelTableError) as exc:
        log_error(f"Pipeline startup failed: {exc}")
        return 1

    event_bus = EventBus()
    narrator = Narrator(NarrationConfig(voice_enabled=pipeline.settings.voice_enabled))
    pipeline.subscribe(NarrationSink(event_bus, narrator))

    if args.replay is None:
        logger.info("Nothing to do; pass --replay FILE or --diagnostics")
        return 0

    try:
        replay(pipeline, args.replay, event_bus)
    except OSError as exc:
        log_error(f"Replay failed: {exc}")
        return 1
    except KeyboardInterrupt:
        logger.info("Replay interrupted by user")

    status = pipeline.get_runtime_status()
    logger.info(
        "Replay finished: frames=%s accepted=%s dropped=%s announcements=%s",
        status["frames_received"],
        status["frames_accepted"],
        status["frames_dropped"],
        status["announcements"],
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
