"""Barbearia service: unified facade over the rotation and commission engines.

This is the primary interface for programmatic access. It orchestrates:
- Barber roster and service catalog (register, deactivate)
- Monthly rotation queue (record service, pass turn, corrections, ranking)
- Performed-service log and commission distribution (report, CSV)
- Persistence (event log, state store)

All operations produce typed results. Every queue adjustment is appended
to the event log before the call returns, so a ranking requested
afterwards by the same caller always includes it. Queue state is
recomputed from the log on every query.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional

from barbearia.commission.allocator import CommissionAllocator
from barbearia.commission.report import export_csv, report_summary
from barbearia.errors import EngineError
from barbearia.models.commission import CommissionReport, Service, ServiceRecord
from barbearia.models.rotation import Barber, RankedBarber, RotationEvent
from barbearia.period import (
    current_month_key,
    month_key,
    recent_month_keys,
    validate_month_key,
)
from barbearia.persistence.event_log import ROTATION_KINDS, EventKind, EventLog, EventRecord
from barbearia.persistence.state_store import StateStore
from barbearia.policy.resolver import PolicyResolver
from barbearia.roster import BarberRoster, ServiceCatalog
from barbearia.rotation.ranker import RotationRanker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


def _error_result(error: Exception) -> ServiceResult:
    data: dict[str, Any] = {}
    if isinstance(error, EngineError):
        data = {"error_kind": error.kind, "identifier": error.identifier}
    return ServiceResult(success=False, errors=[str(error)], data=data)


def _ranked_dict(entry: RankedBarber) -> dict[str, Any]:
    return {
        "position": entry.position,
        "barber_id": entry.barber_id,
        "name": entry.barber.name,
        "total_count": entry.total_count,
        "services_count": entry.services_count,
        "days_passed": entry.days_passed,
        "is_barber_due": entry.is_barber_due,
    }


class BarbeariaService:
    """Unified rotation and commission facade.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        service = BarbeariaService(resolver)

        service.register_barber("b1", "Ana")
        service.register_service("corte", "Corte", minutes_per_unit=30)

        service.record_service("b1", on_date=date(2025, 5, 2), month="2025-05")
        result = service.queue("2025-05")

        service.log_service("b1", "corte", on_date=date(2025, 5, 2))
        result = service.commission_report("2025-05", Decimal("1000.00"))

    Persistence (optional):
        service = BarbeariaService(resolver, event_log=log, state_store=store)
        # Registries are persisted on each mutation and loaded on construction.
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
    ) -> None:
        self._resolver = resolver
        self._ranker = RotationRanker(resolver)
        self._allocator = CommissionAllocator(resolver)
        self._event_log = event_log if event_log is not None else EventLog()
        self._state_store = state_store

        if state_store is not None:
            self._roster = state_store.load_roster()
            self._catalog = state_store.load_catalog()
        else:
            self._roster = BarberRoster()
            self._catalog = ServiceCatalog()

        # Initialize counter from persisted log to avoid ID collision on restart
        self._event_counter = self._event_log.count

    # ------------------------------------------------------------------
    # Roster and catalog
    # ------------------------------------------------------------------

    def register_barber(self, barber_id: str, name: str, active: bool = True) -> ServiceResult:
        """Register a new barber or rename an existing one."""
        try:
            previous = self._roster.get(barber_id)
            entry = self._roster.register(Barber(barber_id=barber_id, name=name, active=active))
        except ValueError as e:
            return _error_result(e)

        def _rollback() -> None:
            if previous is None:
                self._roster._barbers.pop(entry.barber_id, None)
            else:
                self._roster.register(previous)

        err = self._safe_persist(on_rollback=_rollback)
        if err:
            return ServiceResult(success=False, errors=[err])
        logger.info("Registered barber %s (%s)", entry.barber_id, entry.name)
        return ServiceResult(success=True, data={"barber_id": entry.barber_id})

    def set_barber_active(self, barber_id: str, active: bool) -> ServiceResult:
        """Activate or deactivate a barber. History is kept either way."""
        try:
            previous = self._roster.require(barber_id)
            updated = self._roster.set_active(barber_id, active)
        except ValueError as e:
            return _error_result(e)

        err = self._safe_persist(on_rollback=lambda: self._roster.register(previous))
        if err:
            return ServiceResult(success=False, errors=[err])
        logger.info("Barber %s active=%s", updated.barber_id, updated.active)
        return ServiceResult(
            success=True,
            data={"barber_id": updated.barber_id, "active": updated.active},
        )

    def register_service(
        self,
        service_id: str,
        name: str,
        minutes_per_unit: int,
        is_subscription: bool = True,
    ) -> ServiceResult:
        """Register or update a catalog service."""
        try:
            previous = self._catalog.get(service_id)
            entry = self._catalog.register(Service(
                service_id=service_id,
                name=name,
                minutes_per_unit=minutes_per_unit,
                is_subscription=is_subscription,
            ))
        except ValueError as e:
            return _error_result(e)

        def _rollback() -> None:
            if previous is None:
                self._catalog._services.pop(entry.service_id, None)
            else:
                self._catalog.register(previous)

        err = self._safe_persist(on_rollback=_rollback)
        if err:
            return ServiceResult(success=False, errors=[err])
        logger.info("Registered service %s (%d min)", entry.service_id, entry.minutes_per_unit)
        return ServiceResult(success=True, data={"service_id": entry.service_id})

    def get_barber(self, barber_id: str) -> Optional[Barber]:
        return self._roster.get(barber_id)

    def barbers(self) -> list[Barber]:
        return self._roster.all_barbers()

    def services(self) -> list[Service]:
        return self._catalog.all_services()

    # ------------------------------------------------------------------
    # Rotation queue
    # ------------------------------------------------------------------

    def record_service(
        self,
        barber_id: str,
        on_date: Optional[date] = None,
        month: Optional[str] = None,
    ) -> ServiceResult:
        """Count one manual service for a barber in the open month."""
        on_date = on_date or date.today()
        month = month or current_month_key()
        try:
            event = self._ranker.record_service(
                barber_id, on_date, self._roster.all_barbers(), month,
                event_id=self._peek_event_id(),
            )
        except ValueError as e:
            return _error_result(e)
        return self._append_rotation_event(event)

    def pass_turn(
        self,
        barber_id: str,
        on_date: Optional[date] = None,
        month: Optional[str] = None,
    ) -> ServiceResult:
        """Record that a barber passed their turn (still counts as one unit)."""
        on_date = on_date or date.today()
        month = month or current_month_key()
        try:
            event = self._ranker.pass_turn(
                barber_id, on_date, self._roster.all_barbers(), month,
                event_id=self._peek_event_id(),
            )
        except ValueError as e:
            return _error_result(e)
        return self._append_rotation_event(event)

    def correct_services(
        self,
        barber_id: str,
        delta: int,
        on_date: Optional[date] = None,
        month: Optional[str] = None,
    ) -> ServiceResult:
        """Append a compensating service count (usually negative).

        Refused when the barber's monthly service count would drop below zero.
        """
        on_date = on_date or date.today()
        month = month or current_month_key()
        barber_id = barber_id.strip()
        if delta == 0:
            return ServiceResult(success=False, errors=["Correction delta must be non-zero"])
        try:
            tallies = self._ranker.tally(self._event_log.rotation_events(month), month)
            current = tallies[barber_id].services_count if barber_id in tallies else 0
            if current + delta < 0:
                return ServiceResult(
                    success=False,
                    errors=[
                        f"Correction of {delta} would leave {barber_id} with "
                        f"{current + delta} services in {month}"
                    ],
                )
            event = self._ranker.record_service(
                barber_id, on_date, self._roster.all_barbers(), month,
                count=delta, event_id=self._peek_event_id(),
            )
        except ValueError as e:
            return _error_result(e)
        return self._append_rotation_event(event)

    def ranking(self, month: str) -> list[RankedBarber]:
        """Return the month's queue. Raises InvalidMonth on a bad key."""
        return self._ranker.rank(
            self._event_log.rotation_events(month), self._roster.all_barbers(), month,
        )

    def queue(self, month: Optional[str] = None) -> ServiceResult:
        """Return the month's queue with totals (receptionist view)."""
        month = month or current_month_key()
        try:
            summary = self._ranker.summarize(
                self._event_log.rotation_events(month), self._roster.all_barbers(), month,
            )
        except ValueError as e:
            return _error_result(e)
        return ServiceResult(success=True, data={
            "month": summary.month_key,
            "total_units": summary.total_units,
            "average_units": str(summary.average_units),
            "due_barber_ids": [r.barber_id for r in summary.due_barbers],
            "ranking": [_ranked_dict(r) for r in summary.ranking],
        })

    def barber_position(self, barber_id: str, month: Optional[str] = None) -> ServiceResult:
        """Return one barber's place in the month's queue (barber view)."""
        month = month or current_month_key()
        try:
            entry = self._ranker.position_of(
                barber_id,
                self._event_log.rotation_events(month),
                self._roster.all_barbers(),
                month,
            )
        except ValueError as e:
            return _error_result(e)
        return ServiceResult(success=True, data={"month": month, **_ranked_dict(entry)})

    # ------------------------------------------------------------------
    # Performed services and commission
    # ------------------------------------------------------------------

    def log_service(
        self,
        barber_id: str,
        service_id: str,
        on_date: Optional[date] = None,
        quantity: int = 1,
    ) -> ServiceResult:
        """Append a performed-service record used for commission.

        A negative quantity is a correction. It is refused when the
        barber's net quantity of that service in the month would drop
        below zero, since the record could never be removed again.
        """
        on_date = on_date or date.today()
        if quantity == 0:
            return ServiceResult(success=False, errors=["Quantity must be non-zero"])
        try:
            barber = self._roster.require(barber_id)
            service = self._catalog.require(service_id)
            record = ServiceRecord.create(
                barber_id=barber.barber_id,
                service_id=service.service_id,
                record_date=on_date,
                quantity=quantity,
            )
        except ValueError as e:
            return _error_result(e)

        if quantity < 0:
            current = sum(
                r.quantity
                for r in self._event_log.service_records(record.month_key)
                if r.barber_id == record.barber_id and r.service_id == record.service_id
            )
            if current + quantity < 0:
                return ServiceResult(
                    success=False,
                    errors=[
                        f"Correction of {quantity} x {record.service_id} would leave "
                        f"{record.barber_id} with {current + quantity} in {record.month_key}"
                    ],
                )

        event_id = self._next_event_id()
        try:
            event = EventRecord.from_service_record(event_id, record)
            self._event_log.append(event)
        except ValueError as e:
            return _error_result(e)
        except OSError as e:
            self._event_counter -= 1
            return ServiceResult(success=False, errors=[f"Event log failure: {e}"])
        logger.info(
            "Logged %d x %s for %s on %s",
            quantity, record.service_id, record.barber_id, on_date.isoformat(),
        )
        return ServiceResult(success=True, data={
            "event_id": event.event_id,
            "month": record.month_key,
        })

    def build_commission_report(
        self,
        month: str,
        total_revenue: Decimal,
        commission_pct: Optional[Decimal] = None,
    ) -> CommissionReport:
        """Compute the month's distribution. Raises on invalid input."""
        validate_month_key(month)
        pct = commission_pct if commission_pct is not None else self._resolver.default_commission_pct()
        return self._allocator.build_report(
            self._event_log.service_records(month),
            self._roster.all_barbers(),
            self._catalog.all_services(),
            total_revenue=total_revenue,
            commission_pct=pct,
            month=month,
        )

    def commission_report(
        self,
        month: str,
        total_revenue: Decimal | str,
        commission_pct: Optional[Decimal | str] = None,
    ) -> ServiceResult:
        """Return the month's commission distribution as plain data."""
        try:
            report = self.build_commission_report(
                month,
                Decimal(str(total_revenue)),
                Decimal(str(commission_pct)) if commission_pct is not None else None,
            )
        except InvalidOperation:
            return ServiceResult(success=False, errors=["Revenue and percentage must be decimals"])
        except ValueError as e:
            return _error_result(e)
        return ServiceResult(success=True, data=report_summary(report))

    def commission_for(
        self,
        barber_id: str,
        month: str,
        total_revenue: Decimal | str,
        commission_pct: Optional[Decimal | str] = None,
    ) -> ServiceResult:
        """Return one barber's commission for the month."""
        result = self.commission_report(month, total_revenue, commission_pct)
        if not result.success:
            return result
        for row in result.data["results"]:
            if row["barber_id"] == barber_id.strip():
                return ServiceResult(success=True, data=row)
        return ServiceResult(
            success=False,
            errors=[f"Barber not found: {barber_id}"],
            data={"error_kind": "barber_not_found", "identifier": barber_id},
        )

    def commission_csv(
        self,
        month: str,
        total_revenue: Decimal | str,
        commission_pct: Optional[Decimal | str] = None,
    ) -> ServiceResult:
        """Render the month's commission distribution as CSV."""
        try:
            report = self.build_commission_report(
                month,
                Decimal(str(total_revenue)),
                Decimal(str(commission_pct)) if commission_pct is not None else None,
            )
        except InvalidOperation:
            return ServiceResult(success=False, errors=["Revenue and percentage must be decimals"])
        except ValueError as e:
            return _error_result(e)
        return ServiceResult(success=True, data={
            "filename": f"comissoes-{month}.csv",
            "csv": export_csv(report),
        })

    def commission_history(
        self,
        month: Optional[str] = None,
        months: int = 12,
        revenue_by_month: Optional[Mapping[str, Decimal | str]] = None,
        commission_pct: Optional[Decimal | str] = None,
    ) -> ServiceResult:
        """Return pool and payout totals for the ``months`` months ending at ``month``.

        Months without an entry in ``revenue_by_month`` are reported with
        zero revenue. Oldest month first.
        """
        month = month or current_month_key()
        if months < 1:
            return ServiceResult(success=False, errors=["History needs at least one month"])
        revenue_by_month = revenue_by_month or {}
        try:
            for key in revenue_by_month:
                validate_month_key(key)
            pct = Decimal(str(commission_pct)) if commission_pct is not None else None
            history = []
            for key in recent_month_keys(month, months):
                report = self.build_commission_report(
                    key, Decimal(str(revenue_by_month.get(key, "0"))), pct,
                )
                history.append({
                    "month": key,
                    "total_revenue": str(report.total_revenue),
                    "pool_value": str(report.pool_value),
                    "total_commission": str(report.total_commission),
                    "total_minutes": report.total_minutes,
                })
        except InvalidOperation:
            return ServiceResult(success=False, errors=["Revenue and percentage must be decimals"])
        except ValueError as e:
            return _error_result(e)
        total = sum((Decimal(entry["total_commission"]) for entry in history), Decimal("0"))
        return ServiceResult(success=True, data={
            "month": month,
            "history": history,
            "total_commission": str(total),
        })

    # ------------------------------------------------------------------
    # Daily activity and status
    # ------------------------------------------------------------------

    def daily_activity(self, on_date: Optional[date] = None) -> ServiceResult:
        """Return what each barber did on one date (front desk day sheet).

        Lists queue services, passed turns and performed services per
        barber, for barbers with at least one record that day.
        """
        on_date = on_date or date.today()
        key = month_key(on_date)
        activity: dict[str, dict[str, Any]] = {}

        def _entry(barber_id: str) -> dict[str, Any]:
            if barber_id not in activity:
                barber = self._roster.get(barber_id)
                activity[barber_id] = {
                    "barber_id": barber_id,
                    "name": barber.name if barber is not None else barber_id,
                    "services_count": 0,
                    "days_passed": 0,
                    "performed": {},
                }
            return activity[barber_id]

        for record in self._event_log.events_for_month(key):
            if record.payload.get("date") != on_date.isoformat():
                continue
            entry = _entry(record.barber_id)
            if record.event_kind in ROTATION_KINDS:
                event = record.to_rotation_event()
                if record.event_kind == EventKind.TURN_PASSED:
                    entry["days_passed"] += 1
                else:
                    entry["services_count"] += event.count
            else:
                performed = record.to_service_record()
                entry["performed"][performed.service_id] = (
                    entry["performed"].get(performed.service_id, 0) + performed.quantity
                )

        rows = sorted(activity.values(), key=lambda e: (e["name"].casefold(), e["barber_id"]))
        return ServiceResult(success=True, data={
            "date": on_date.isoformat(),
            "month": key,
            "barbers": rows,
        })

    def status(self) -> dict[str, Any]:
        """Return a system-wide status summary."""
        last = self._event_log.last_event
        return {
            "version": "0.1.0",
            "barbers": {
                "total": self._roster.count,
                "active": self._roster.active_count,
            },
            "services": self._catalog.count,
            "events": {
                "total": self._event_log.count,
                "months": self._event_log.months(),
                "last_event_id": last.event_id if last is not None else None,
            },
            "policy": self._resolver.as_dict(),
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _peek_event_id(self) -> str:
        return f"EVT-{self._event_counter + 1:08d}"

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _append_rotation_event(self, event: RotationEvent) -> ServiceResult:
        """Durably append a rotation event before reporting success."""
        try:
            record = EventRecord.from_rotation_event(self._next_event_id(), event)
            self._event_log.append(record)
        except ValueError as e:
            return _error_result(e)
        except OSError as e:
            self._event_counter -= 1
            return ServiceResult(success=False, errors=[f"Event log failure: {e}"])
        logger.info(
            "%s for %s on %s (count %d)",
            event.kind.value, event.barber_id, event.event_date.isoformat(), event.count,
        )
        return ServiceResult(success=True, data={
            "event_id": record.event_id,
            "barber_id": event.barber_id,
            "kind": event.kind.value,
            "month": event.month_key,
        })

    def _persist_state(self) -> None:
        if self._state_store is not None:
            self._state_store.save(self._roster, self._catalog)

    def _safe_persist(
        self,
        on_rollback: Optional[Callable[[], None]] = None,
    ) -> Optional[str]:
        """Persist registries with fail-closed error handling.

        On failure, executes the rollback callback to undo in-memory
        mutations and returns an error string for the ServiceResult.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            if on_rollback is not None:
                on_rollback()
            logger.error("Persistence failure: %s", e)
            return f"Persistence failure: {e}"
