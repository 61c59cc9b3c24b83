"""Rotation models: barbers, rotation events, and derived queue state.

Rotation events are immutable facts appended throughout the month. All
queue state (tallies, positions) is derived from them on every query and
never stored.

Invariants enforced by these models:
- An event's month key is derived from its date and cannot disagree with it
- A TURN_PASSED event always carries a count of one
- A SERVICE_RECORDED event carries a non-zero count (negative = correction)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from barbearia.period import month_key


class RotationEventKind(str, enum.Enum):
    """Kind of manual adjustment made to the monthly queue."""
    SERVICE_RECORDED = "service_recorded"
    TURN_PASSED = "turn_passed"


@dataclass(frozen=True)
class Barber:
    """A barber identity as seen by the engines.

    Only active barbers take part in the rotation. Inactive barbers keep
    their historical commission results.
    """
    barber_id: str
    name: str
    active: bool = True


@dataclass(frozen=True)
class RotationEvent:
    """A single immutable rotation fact.

    Use ``RotationEvent.create`` to derive the month key from the date.
    """
    barber_id: str
    event_date: date
    kind: RotationEventKind
    month_key: str
    count: int = 1
    event_id: Optional[str] = None

    def __post_init__(self) -> None:
        derived = month_key(self.event_date)
        if self.month_key != derived:
            raise ValueError(
                f"Month key {self.month_key} does not match event date "
                f"{self.event_date.isoformat()} (expected {derived})"
            )
        if self.kind == RotationEventKind.TURN_PASSED and self.count != 1:
            raise ValueError(f"TURN_PASSED events count exactly once, got {self.count}")
        if self.kind == RotationEventKind.SERVICE_RECORDED and self.count == 0:
            raise ValueError("SERVICE_RECORDED events need a non-zero count")

    @staticmethod
    def create(
        barber_id: str,
        event_date: date,
        kind: RotationEventKind,
        count: int = 1,
        event_id: Optional[str] = None,
    ) -> RotationEvent:
        """Create an event, deriving its month key from ``event_date``."""
        return RotationEvent(
            barber_id=barber_id,
            event_date=event_date,
            kind=kind,
            month_key=month_key(event_date),
            count=count,
            event_id=event_id,
        )


@dataclass(frozen=True)
class MonthlyTally:
    """Per-barber, per-month activity folded from rotation events.

    total_count is the fairness measure: services plus (by default)
    one unit per passed turn.
    """
    barber_id: str
    month_key: str
    services_count: int = 0
    days_passed: int = 0
    total_count: int = 0


@dataclass(frozen=True)
class RankedBarber:
    """One entry of the monthly queue, most due first."""
    barber: Barber
    position: int
    total_count: int
    services_count: int
    days_passed: int
    is_barber_due: bool

    @property
    def barber_id(self) -> str:
        return self.barber.barber_id


@dataclass(frozen=True)
class RotationSummary:
    """The receptionist's view of the queue for a month."""
    month_key: str
    ranking: list[RankedBarber] = field(default_factory=list)
    total_units: int = 0
    average_units: Decimal = Decimal("0")

    @property
    def due_barbers(self) -> list[RankedBarber]:
        return [r for r in self.ranking if r.is_barber_due]

    @property
    def next_barber(self) -> Optional[RankedBarber]:
        return self.ranking[0] if self.ranking else None
