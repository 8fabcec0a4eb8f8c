"""Tests for the detection session pipeline and sink fan-out."""

from __future__ import annotations

from pathlib import Path

from config.controller import ConfigController
from vision.detections import RawDetectionBatch
from vision.labels import LabelTable
from vision.pipeline import DetectionPipeline
from vision.settings import DetectionSettings


LABELS = LabelTable(["???", "person", "chair", "bottle"])


class _RecordingSink:
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def on_session_started(self) -> None:
        self.calls.append(("started", None))

    def on_display(self, update) -> None:
        self.calls.append(("display", update))

    def on_announcement(self, event) -> None:
        self.calls.append(("announcement", event))

    def on_session_stopped(self, summary) -> None:
        self.calls.append(("stopped", summary))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]


class _BrokenSink(_RecordingSink):
    def on_display(self, update) -> None:
        raise RuntimeError("display offline")


def _batch(class_id: float, score: float) -> RawDetectionBatch:
    return RawDetectionBatch(
        locations=[[0.1, 0.1, 0.9, 0.9]],
        classes=[class_id],
        scores=[score],
        count=1.0,
    )


def _pipeline(**overrides) -> DetectionPipeline:
    return DetectionPipeline(DetectionSettings(**overrides), LABELS)


def test_frames_ignored_while_session_inactive() -> None:
    pipeline = _pipeline()
    sink = _RecordingSink()
    pipeline.subscribe(sink)

    assert pipeline.process(_batch(1, 0.9), now_ms=0) is None
    assert sink.calls == []
    assert pipeline.get_runtime_status()["frames_ignored"] == 1


def test_session_flow_notifies_sinks_in_order() -> None:
    pipeline = _pipeline(frame_cooldown_ms=1500, announce_cooldown_ms=3000)
    sink = _RecordingSink()
    pipeline.subscribe(sink)

    assert pipeline.start_session() is True
    first = pipeline.process(_batch(1, 0.92), now_ms=1000)
    dropped = pipeline.process(_batch(1, 0.92), now_ms=1500)
    repeat = pipeline.process(_batch(1, 0.92), now_ms=2600)
    summary = pipeline.stop_session()

    assert first is not None and first.announcement is not None
    assert dropped is not None and not dropped.accepted
    assert repeat is not None and repeat.accepted and repeat.announcement is None
    assert sink.kinds() == ["started", "display", "announcement", "display", "stopped"]
    assert summary is not None
    assert summary.total_accepted_count == 2
    assert summary.unique_count == 1
    assert summary.labels == ("person",)


def test_stop_session_resets_state_for_next_session() -> None:
    pipeline = _pipeline()
    pipeline.start_session()
    pipeline.process(_batch(2, 0.8), now_ms=1000)
    pipeline.stop_session()

    pipeline.start_session()
    outcome = pipeline.process(_batch(2, 0.8), now_ms=1001)

    assert outcome is not None and outcome.accepted
    assert outcome.announcement is not None
    assert outcome.state.total_accepted_count == 1


def test_start_and_stop_are_idempotent() -> None:
    pipeline = _pipeline()

    assert pipeline.stop_session() is None
    assert pipeline.start_session() is True
    assert pipeline.start_session() is False
    assert pipeline.stop_session() is not None
    assert pipeline.stop_session() is None


def test_failing_sink_does_not_break_processing() -> None:
    pipeline = _pipeline()
    broken = _BrokenSink()
    healthy = _RecordingSink()
    pipeline.subscribe(broken)
    pipeline.subscribe(healthy)
    pipeline.start_session()

    outcome = pipeline.process(_batch(3, 0.9), now_ms=0)

    assert outcome is not None and outcome.announcement is not None
    assert "announcement" in broken.kinds()
    assert healthy.kinds() == ["started", "display", "announcement"]


def test_unsubscribed_sink_stops_receiving() -> None:
    pipeline = _pipeline()
    sink = _RecordingSink()
    pipeline.subscribe(sink)
    pipeline.unsubscribe(sink)
    pipeline.start_session()

    pipeline.process(_batch(1, 0.9), now_ms=0)

    assert sink.calls == []


def test_runtime_status_counters() -> None:
    pipeline = _pipeline(frame_cooldown_ms=1000)
    pipeline.start_session()
    pipeline.process(_batch(1, 0.9), now_ms=0)
    pipeline.process(_batch(1, 0.9), now_ms=100)
    pipeline.process(_batch(0, 0.9), now_ms=2000)

    status = pipeline.get_runtime_status()

    assert status["active"] == 1
    assert status["labels"] == 4
    assert status["frames_received"] == 3
    assert status["frames_accepted"] == 2
    assert status["frames_dropped"] == 1
    assert status["announcements"] == 1
    assert status["total_detections"] == 1
    assert status["unique_objects"] == 1
    assert status["last_announced"] == "person"


def test_frame_from_restarted_session_is_not_applied() -> None:
    pipeline = _pipeline()
    sink = _RecordingSink()
    pipeline.subscribe(sink)
    pipeline.start_session()
    decode = pipeline.decoder.decode

    def decode_across_restart(batch):
        pipeline.stop_session()
        pipeline.start_session()
        return decode(batch)

    pipeline.decoder.decode = decode_across_restart

    assert pipeline.process(_batch(1, 0.9), now_ms=0) is None
    assert pipeline.stabilizer.state.total_accepted_count == 0
    assert "announcement" not in sink.kinds()
    assert pipeline.get_runtime_status()["frames_ignored"] == 1


def test_from_config_loads_settings_and_labels(tmp_path: Path, monkeypatch) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "labels.txt").write_text("???\nperson\nchair\n", encoding="utf-8")
    (config_dir / "default.yaml").write_text(
        "\n".join(
            [
                "detection:",
                "  labels_path: config/labels.txt",
                "  expected_classes: 2",
                "  display_cap: 2",
                "  frame_cooldown_ms: 0",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    ConfigController._instance = None

    pipeline = DetectionPipeline.from_config()

    assert len(pipeline.labels) == 3
    assert pipeline.settings.display_cap == 2
    assert pipeline.settings.frame_cooldown_ms == 0
    ConfigController._instance = None
