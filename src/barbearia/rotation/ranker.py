"""Rotation ranker: decides which barber is next in line ("lista da vez").

The ranking is a pure fold over the month's rotation events:

    total_count = Σ service counts + Σ passed turns
    order       = total_count ascending, then tie-break, then barber id

Fewer units served means the barber is more due. Every barber sharing
the minimum total_count is flagged as due, so a month can have several
"da vez" barbers at once.

Key rules:
- Only active barbers are ranked.
- Events from other months are ignored.
- Tallies are recomputed from the events on every call, never cached.
- Recording a service or passing a turn produces a new event; the
  caller appends it to the store. No deduplication happens here.

The ranker is a pure computation layer. The service layer handles side
effects (event persistence, logging).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from barbearia.errors import BarberNotFound
from barbearia.models.rotation import (
    Barber,
    MonthlyTally,
    RankedBarber,
    RotationEvent,
    RotationEventKind,
    RotationSummary,
)
from barbearia.period import ensure_in_month, validate_month_key
from barbearia.policy.resolver import PolicyResolver, TIE_BREAK_TURNS_PASSED


class RotationRanker:
    """Ranks active barbers from most due to least due.

    Usage:
        ranker = RotationRanker(resolver)
        ranking = ranker.rank(events, barbers, "2025-05")
        event = ranker.pass_turn("b1", date(2025, 5, 3), barbers, "2025-05")
    """

    def __init__(self, resolver: PolicyResolver) -> None:
        self._resolver = resolver

    def tally(
        self,
        events: Iterable[RotationEvent],
        month: str,
    ) -> dict[str, MonthlyTally]:
        """Fold the month's events into per-barber tallies.

        Barbers without events in the month get no entry; callers treat
        a missing tally as zero activity.
        """
        validate_month_key(month)
        count_passes = self._resolver.count_passed_turns()
        collapse_passes = self._resolver.collapse_duplicate_passes()

        services: dict[str, int] = {}
        passes: dict[str, int] = {}
        seen_pass_days: set[tuple[str, date]] = set()

        for event in events:
            if event.month_key != month:
                continue
            if event.kind == RotationEventKind.SERVICE_RECORDED:
                services[event.barber_id] = services.get(event.barber_id, 0) + event.count
            elif event.kind == RotationEventKind.TURN_PASSED:
                if collapse_passes:
                    day_key = (event.barber_id, event.event_date)
                    if day_key in seen_pass_days:
                        continue
                    seen_pass_days.add(day_key)
                passes[event.barber_id] = passes.get(event.barber_id, 0) + 1

        tallies: dict[str, MonthlyTally] = {}
        for barber_id in set(services) | set(passes):
            served = services.get(barber_id, 0)
            passed = passes.get(barber_id, 0)
            tallies[barber_id] = MonthlyTally(
                barber_id=barber_id,
                month_key=month,
                services_count=served,
                days_passed=passed,
                total_count=served + (passed if count_passes else 0),
            )
        return tallies

    def rank(
        self,
        events: Iterable[RotationEvent],
        barbers: Iterable[Barber],
        month: str,
    ) -> list[RankedBarber]:
        """Produce the month's queue, most due barber first.

        Returns an empty list when no barber is active.
        """
        tallies = self.tally(events, month)
        active = [b for b in barbers if b.active]
        if not active:
            return []

        by_turns = self._resolver.tie_break() == TIE_BREAK_TURNS_PASSED
        empty = MonthlyTally(barber_id="", month_key=month)

        def sort_key(barber: Barber) -> tuple:
            t = tallies.get(barber.barber_id, empty)
            if by_turns:
                return (t.total_count, t.days_passed, barber.name.casefold(), barber.barber_id)
            return (t.total_count, barber.name.casefold(), barber.barber_id)

        ordered = sorted(active, key=sort_key)
        minimum = tallies.get(ordered[0].barber_id, empty).total_count

        ranking: list[RankedBarber] = []
        for position, barber in enumerate(ordered, 1):
            t = tallies.get(barber.barber_id, empty)
            ranking.append(RankedBarber(
                barber=barber,
                position=position,
                total_count=t.total_count,
                services_count=t.services_count,
                days_passed=t.days_passed,
                is_barber_due=t.total_count == minimum,
            ))
        return ranking

    def summarize(
        self,
        events: Iterable[RotationEvent],
        barbers: Iterable[Barber],
        month: str,
    ) -> RotationSummary:
        """Rank the month and add queue-wide totals.

        average_units is the mean total_count per active barber, rounded
        to one decimal place.
        """
        ranking = self.rank(events, barbers, month)
        total = sum(r.total_count for r in ranking)
        if ranking:
            average = (Decimal(total) / Decimal(len(ranking))).quantize(Decimal("0.1"))
        else:
            average = Decimal("0")
        return RotationSummary(
            month_key=month,
            ranking=ranking,
            total_units=total,
            average_units=average,
        )

    def position_of(
        self,
        barber_id: str,
        events: Iterable[RotationEvent],
        barbers: Iterable[Barber],
        month: str,
    ) -> RankedBarber:
        """Return a single barber's queue entry.

        Raises BarberNotFound if the barber is unknown or inactive.
        """
        wanted = barber_id.strip()
        for entry in self.rank(events, barbers, month):
            if entry.barber_id == wanted:
                return entry
        raise BarberNotFound(barber_id, f"Barber not in the {month} rotation: {barber_id}")

    def record_service(
        self,
        barber_id: str,
        on_date: date,
        barbers: Iterable[Barber],
        month: str,
        count: int = 1,
        event_id: Optional[str] = None,
    ) -> RotationEvent:
        """Create a SERVICE_RECORDED event for the open month.

        A negative count is a compensating correction. Raises
        BarberNotFound or InvalidMonth.
        """
        canonical_id = self._check_target(barber_id, on_date, barbers, month)
        return RotationEvent.create(
            barber_id=canonical_id,
            event_date=on_date,
            kind=RotationEventKind.SERVICE_RECORDED,
            count=count,
            event_id=event_id,
        )

    def pass_turn(
        self,
        barber_id: str,
        on_date: date,
        barbers: Iterable[Barber],
        month: str,
        event_id: Optional[str] = None,
    ) -> RotationEvent:
        """Create a TURN_PASSED event for the open month.

        Raises BarberNotFound or InvalidMonth.
        """
        canonical_id = self._check_target(barber_id, on_date, barbers, month)
        return RotationEvent.create(
            barber_id=canonical_id,
            event_date=on_date,
            kind=RotationEventKind.TURN_PASSED,
            event_id=event_id,
        )

    def _check_target(
        self,
        barber_id: str,
        on_date: date,
        barbers: Iterable[Barber],
        month: str,
    ) -> str:
        """Return the roster id for ``barber_id`` after checking the target month."""
        canonical_id = barber_id.strip()
        if not any(b.barber_id == canonical_id for b in barbers):
            raise BarberNotFound(barber_id, f"Barber not found: {barber_id}")
        ensure_in_month(on_date, month)
        return canonical_id
