from __future__ import annotations

import json
from pathlib import Path

import pytest

from asterisk_harness.ami.tracer import EventTracer, TracerState


def test_trace_is_a_json_array_in_arrival_order(tmp_path: Path) -> None:
    path = tmp_path / "ami-events.json"
    tracer = EventTracer(path)
    events = [
        {"event": "FullyBooted", "status": "Fully Booted"},
        {"event": "Dial", "channel": "PJSIP/alice-1"},
        {"event": "Hangup", "channel": "PJSIP/alice-1", "cause": "16"},
    ]

    for event in events:
        tracer.record(event)
    tracer.finalize()

    assert json.loads(path.read_text(encoding="utf-8")) == events
    assert tracer.count == 3


def test_trace_layout_matches_incremental_writes(tmp_path: Path) -> None:
    path = tmp_path / "ami-events.json"
    tracer = EventTracer(path)

    tracer.record({"event": "Dial"})
    tracer.record({"event": "Hangup"})
    tracer.finalize()

    assert path.read_text(encoding="utf-8") == (
        '[\n\t{"event": "Dial"},\n\t{"event": "Hangup"}\n]'
    )


def test_file_opens_lazily_on_first_event(tmp_path: Path) -> None:
    path = tmp_path / "ami-events.json"
    tracer = EventTracer(path)

    assert tracer.state is TracerState.CLOSED
    assert not path.exists()

    tracer.record({"event": "Dial"})

    assert tracer.state is TracerState.OPEN
    assert path.read_text(encoding="utf-8").startswith("[\n\t")


def test_finalize_without_events_writes_nothing(tmp_path: Path) -> None:
    path = tmp_path / "ami-events.json"
    tracer = EventTracer(path)

    tracer.finalize()
    tracer.finalize()

    assert tracer.state is TracerState.FINALIZED
    assert not path.exists()


def test_record_after_finalize_raises(tmp_path: Path) -> None:
    tracer = EventTracer(tmp_path / "ami-events.json")
    tracer.record({"event": "Dial"})
    tracer.finalize()

    with pytest.raises(RuntimeError, match="already finalized"):
        tracer.record({"event": "Hangup"})
