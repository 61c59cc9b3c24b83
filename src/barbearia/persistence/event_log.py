"""Append-only event log: the store of rotation events and service records.

Every manual queue adjustment and every performed service is appended to
the log as an immutable record. The log serves as:
1. The input of every ranking and commission computation (recomputed
   from the log, never from cached counters).
2. The audit trail of corrections (compensating records, never edits).

Month rollover needs no reset: readers select records by month key.
Appends are read-after-write consistent for the process that made them.
"""

from __future__ import annotations

import enum
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

from barbearia.models.commission import ServiceRecord
from barbearia.models.rotation import RotationEvent, RotationEventKind

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    """Classification of logged records."""
    SERVICE_RECORDED = "service_recorded"
    TURN_PASSED = "turn_passed"
    SERVICE_PERFORMED = "service_performed"


ROTATION_KINDS = {
    EventKind.SERVICE_RECORDED: RotationEventKind.SERVICE_RECORDED,
    EventKind.TURN_PASSED: RotationEventKind.TURN_PASSED,
}


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    barber_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "barber_id": barber_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable entry of the log.

    event_hash is computed at creation time over the canonical JSON of
    the other fields; it is re-verified when the log is loaded.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    barber_id: str
    month_key: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        barber_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new record with computed hash.

        The payload must contain a ``month_key``.
        """
        if "month_key" not in payload:
            raise ValueError(f"Event {event_id} payload has no month_key")
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            barber_id=barber_id,
            month_key=payload["month_key"],
            payload=payload,
            event_hash=_canonical_hash(event_id, event_kind.value, ts_str, barber_id, payload),
        )

    @staticmethod
    def from_rotation_event(event_id: str, event: RotationEvent) -> EventRecord:
        kind = (
            EventKind.TURN_PASSED
            if event.kind == RotationEventKind.TURN_PASSED
            else EventKind.SERVICE_RECORDED
        )
        return EventRecord.create(
            event_id=event_id,
            event_kind=kind,
            barber_id=event.barber_id,
            payload={
                "date": event.event_date.isoformat(),
                "month_key": event.month_key,
                "count": event.count,
            },
        )

    @staticmethod
    def from_service_record(event_id: str, record: ServiceRecord) -> EventRecord:
        return EventRecord.create(
            event_id=event_id,
            event_kind=EventKind.SERVICE_PERFORMED,
            barber_id=record.barber_id,
            payload={
                "date": record.record_date.isoformat(),
                "month_key": record.month_key,
                "service_id": record.service_id,
                "quantity": record.quantity,
            },
        )

    def to_rotation_event(self) -> RotationEvent:
        return RotationEvent.create(
            barber_id=self.barber_id,
            event_date=date.fromisoformat(self.payload["date"]),
            kind=ROTATION_KINDS[self.event_kind],
            count=int(self.payload.get("count", 1)),
            event_id=self.event_id,
        )

    def to_service_record(self) -> ServiceRecord:
        return ServiceRecord.create(
            barber_id=self.barber_id,
            service_id=self.payload["service_id"],
            record_date=date.fromisoformat(self.payload["date"]),
            quantity=int(self.payload["quantity"]),
            record_id=self.event_id,
        )


class EventLog:
    """Append-only event log with optional file persistence.

    Records can only be appended, never modified or deleted.
    The log can be persisted to a JSONL file (one JSON object per line)
    and loaded back for recovery.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)
            logger.info("Loaded %d events from %s", len(self._events), storage_path)

    def append(self, event: EventRecord) -> None:
        """Append a record to the log.

        The file write happens before the in-memory append, so a failed
        write leaves the log unchanged. Raises ValueError if event_id is
        a duplicate (replay protection) and OSError on write failure.
        """
        if event.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")

        if self._storage_path:
            self._append_to_file(event)

        self._events.append(event)
        self._event_ids.add(event.event_id)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return records, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    def events_for_month(
        self,
        month_key: str,
        kind: Optional[EventKind] = None,
    ) -> list[EventRecord]:
        """Return records of one month, optionally filtered by kind."""
        return [e for e in self.events(kind) if e.month_key == month_key]

    def rotation_events(self, month_key: Optional[str] = None) -> list[RotationEvent]:
        """Return rotation events, optionally restricted to one month."""
        return [
            e.to_rotation_event()
            for e in self._events
            if e.event_kind in ROTATION_KINDS
            and (month_key is None or e.month_key == month_key)
        ]

    def service_records(self, month_key: Optional[str] = None) -> list[ServiceRecord]:
        """Return performed-service records, optionally restricted to one month."""
        return [
            e.to_service_record()
            for e in self._events
            if e.event_kind == EventKind.SERVICE_PERFORMED
            and (month_key is None or e.month_key == month_key)
        ]

    def months(self) -> list[str]:
        """Return every month key present in the log, sorted."""
        return sorted({e.month_key for e in self._events})

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, event: EventRecord) -> None:
        """Append a single record to the JSONL file."""
        record = {
            "event_id": event.event_id,
            "event_kind": event.event_kind.value,
            "timestamp_utc": event.timestamp_utc,
            "barber_id": event.barber_id,
            "payload": event.payload,
            "event_hash": event.event_hash,
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load records from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs (replay protection on recovery).
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)

                event_id = data["event_id"]
                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_hash(
                    data["event_id"],
                    data["event_kind"],
                    data["timestamp_utc"],
                    data["barber_id"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=data["event_id"],
                    event_kind=EventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    barber_id=data["barber_id"],
                    month_key=data["payload"]["month_key"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event.event_id)
