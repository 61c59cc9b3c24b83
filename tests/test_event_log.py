"""Tests for the append-only event log: integrity and month scoping."""

import json
from datetime import date
from pathlib import Path

import pytest

from barbearia.models.commission import ServiceRecord
from barbearia.models.rotation import RotationEvent, RotationEventKind
from barbearia.persistence.event_log import EventKind, EventLog, EventRecord


def _rotation(event_id: str, barber_id: str = "a", day: date = date(2025, 5, 2),
              kind: RotationEventKind = RotationEventKind.SERVICE_RECORDED) -> EventRecord:
    return EventRecord.from_rotation_event(
        event_id, RotationEvent.create(barber_id, day, kind),
    )


def _performed(event_id: str, day: date = date(2025, 5, 2)) -> EventRecord:
    return EventRecord.from_service_record(
        event_id, ServiceRecord.create("a", "corte", day, quantity=2),
    )


class TestAppend:
    def test_append_and_read_back(self) -> None:
        log = EventLog()
        log.append(_rotation("EVT-1"))
        assert log.count == 1
        assert log.last_event.event_id == "EVT-1"
        assert log.events(EventKind.SERVICE_RECORDED)[0].month_key == "2025-05"

    def test_duplicate_id_rejected(self) -> None:
        log = EventLog()
        log.append(_rotation("EVT-1"))
        with pytest.raises(ValueError):
            log.append(_rotation("EVT-1"))

    def test_payload_requires_month_key(self) -> None:
        with pytest.raises(ValueError):
            EventRecord.create("EVT-1", EventKind.TURN_PASSED, "a", {"date": "2025-05-01"})


class TestMonthScoping:
    def test_rotation_events_by_month(self) -> None:
        log = EventLog()
        log.append(_rotation("EVT-1", day=date(2025, 4, 30)))
        log.append(_rotation("EVT-2", kind=RotationEventKind.TURN_PASSED))
        log.append(_performed("EVT-3"))
        events = log.rotation_events("2025-05")
        assert len(events) == 1
        assert events[0].kind == RotationEventKind.TURN_PASSED
        assert events[0].event_id == "EVT-2"
        assert len(log.rotation_events()) == 2

    def test_service_records_round_trip(self) -> None:
        log = EventLog()
        log.append(_performed("EVT-1"))
        record = log.service_records("2025-05")[0]
        assert record.service_id == "corte"
        assert record.quantity == 2
        assert record.record_id == "EVT-1"

    def test_events_for_month_by_kind(self) -> None:
        log = EventLog()
        log.append(_rotation("EVT-1", day=date(2025, 4, 30)))
        log.append(_rotation("EVT-2"))
        log.append(_performed("EVT-3"))
        assert [e.event_id for e in log.events_for_month("2025-05")] == ["EVT-2", "EVT-3"]
        performed = log.events_for_month("2025-05", EventKind.SERVICE_PERFORMED)
        assert [e.event_id for e in performed] == ["EVT-3"]

    def test_months(self) -> None:
        log = EventLog()
        log.append(_rotation("EVT-1", day=date(2025, 6, 1)))
        log.append(_rotation("EVT-2", day=date(2025, 5, 1)))
        assert log.months() == ["2025-05", "2025-06"]


class TestFilePersistence:
    def test_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(storage_path=path)
        log.append(_rotation("EVT-1"))
        log.append(_performed("EVT-2"))

        reloaded = EventLog(storage_path=path)
        assert reloaded.count == 2
        assert reloaded.rotation_events("2025-05")[0].barber_id == "a"

    def test_tampered_record_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_rotation("EVT-1"))
        data = json.loads(path.read_text(encoding="utf-8"))
        data["payload"]["count"] = 50
        path.write_text(json.dumps(data) + "\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Integrity"):
            EventLog(storage_path=path)

    def test_duplicate_on_recovery_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_rotation("EVT-1"))
        line = path.read_text(encoding="utf-8")
        path.write_text(line + line, encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate"):
            EventLog(storage_path=path)
