"""Commission allocator: splits the commission pool by minutes worked.

For each barber in the period:

    minutes_worked     = Σ quantity × service.minutes_per_unit
    participation_rate = minutes_worked / total_minutes   (0 when total is 0)
    revenue_share      = participation_rate × total_revenue
    commission_value   = participation_rate × total_revenue × commission_pct

Rounding to currency precision happens once per barber, on the final
value, using the configured rounding mode. The sum of commission values
may therefore drift from the pool (total_revenue × commission_pct) by at
most one cent per barber.

Key rules:
- A record for a service missing from the catalog fails the whole
  computation (UnknownService). Partial payouts are never produced.
- A record for a barber missing from the roster fails the computation
  (BarberNotFound).
- Every barber passed in gets a result, including inactive barbers and
  barbers with no records.
- With subscription_services_only, records of non-subscription services
  are validated but contribute no minutes.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from barbearia.errors import BarberNotFound, UnknownService
from barbearia.models.commission import (
    CommissionReport,
    CommissionResult,
    Service,
    ServiceRecord,
)
from barbearia.models.rotation import Barber
from barbearia.period import validate_month_key
from barbearia.policy.resolver import PolicyResolver

CENT = Decimal("0.01")


class CommissionAllocator:
    """Computes each barber's commission for a period.

    Usage:
        allocator = CommissionAllocator(resolver)
        results = allocator.allocate(
            records, barbers, services,
            total_revenue=Decimal("1000.00"),
            commission_pct=Decimal("0.40"),
        )
    """

    def __init__(self, resolver: PolicyResolver) -> None:
        self._resolver = resolver

    def minutes_by_barber(
        self,
        records: Iterable[ServiceRecord],
        barbers: Iterable[Barber],
        services: Iterable[Service],
        month: Optional[str] = None,
    ) -> dict[str, int]:
        """Sum minutes worked per barber.

        When ``month`` is given, records from other months are ignored.
        Raises UnknownService, BarberNotFound, or ValueError if a
        correction drives a barber's minutes below zero.
        """
        if month is not None:
            validate_month_key(month)
        catalog = {s.service_id: s for s in services}
        minutes = {b.barber_id: 0 for b in barbers}
        subscription_only = self._resolver.subscription_services_only()

        for record in records:
            if month is not None and record.month_key != month:
                continue
            service = catalog.get(record.service_id)
            if service is None:
                raise UnknownService(
                    record.service_id,
                    f"Service not in catalog: {record.service_id}",
                )
            if record.barber_id not in minutes:
                raise BarberNotFound(
                    record.barber_id,
                    f"Service record for unknown barber: {record.barber_id}",
                )
            if subscription_only and not service.is_subscription:
                continue
            minutes[record.barber_id] += record.quantity * service.minutes_per_unit

        negative = sorted(bid for bid, m in minutes.items() if m < 0)
        if negative:
            raise ValueError(f"Corrections exceed recorded minutes for: {', '.join(negative)}")
        return minutes

    def build_report(
        self,
        records: Iterable[ServiceRecord],
        barbers: Iterable[Barber],
        services: Iterable[Service],
        total_revenue: Decimal,
        commission_pct: Decimal,
        month: Optional[str] = None,
    ) -> CommissionReport:
        """Compute the full distribution with pool and totals.

        Results are ordered by commission descending, then barber name.
        """
        if total_revenue < Decimal("0"):
            raise ValueError(f"Total revenue cannot be negative, got {total_revenue}")
        if not (Decimal("0") <= commission_pct <= Decimal("1")):
            raise ValueError(f"Commission percentage must be in [0, 1], got {commission_pct}")

        roster = list(barbers)
        minutes = self.minutes_by_barber(records, roster, services, month)
        total_minutes = sum(minutes.values())
        rounding = self._resolver.commission_rounding()

        results: list[CommissionResult] = []
        for barber in roster:
            worked = minutes[barber.barber_id]
            if total_minutes > 0:
                participation = Decimal(worked) / Decimal(total_minutes)
                # Single division keeps full precision until the final rounding
                share = Decimal(worked) * total_revenue / Decimal(total_minutes)
                commission = Decimal(worked) * total_revenue * commission_pct / Decimal(total_minutes)
            else:
                participation = Decimal("0")
                share = Decimal("0")
                commission = Decimal("0")
            results.append(CommissionResult(
                barber=barber,
                minutes_worked=worked,
                participation_rate=participation,
                revenue_share=share.quantize(CENT, rounding=rounding),
                commission_value=commission.quantize(CENT, rounding=rounding),
            ))

        results.sort(key=lambda r: (-r.commission_value, r.barber.name.casefold(), r.barber_id))
        return CommissionReport(
            month_key=month,
            total_revenue=total_revenue,
            commission_pct=commission_pct,
            pool_value=total_revenue * commission_pct,
            total_minutes=total_minutes,
            results=results,
        )

    def allocate(
        self,
        records: Iterable[ServiceRecord],
        barbers: Iterable[Barber],
        services: Iterable[Service],
        total_revenue: Decimal,
        commission_pct: Decimal,
        month: Optional[str] = None,
    ) -> list[CommissionResult]:
        """Return one CommissionResult per barber."""
        return self.build_report(
            records, barbers, services, total_revenue, commission_pct, month,
        ).results

    def commission_for(
        self,
        barber_id: str,
        records: Iterable[ServiceRecord],
        barbers: Iterable[Barber],
        services: Iterable[Service],
        total_revenue: Decimal,
        commission_pct: Decimal,
        month: Optional[str] = None,
    ) -> CommissionResult:
        """Return a single barber's result. Raises BarberNotFound."""
        for result in self.allocate(
            records, barbers, services, total_revenue, commission_pct, month,
        ):
            if result.barber_id == barber_id:
                return result
        raise BarberNotFound(barber_id, f"Barber not found: {barber_id}")
