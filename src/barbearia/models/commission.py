"""Commission models: services, performed-service records, and payouts.

All monetary values use Decimal. Percentages are fractions in [0, 1]
(a 40% commission is Decimal("0.40")).

Invariants enforced by these models:
- A service takes a positive number of minutes per unit
- A record's month key is derived from its date
- Commission values are rounded once, at the final result
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from barbearia.models.rotation import Barber
from barbearia.period import month_key


@dataclass(frozen=True)
class Service:
    """A catalog entry describing how long one unit of a service takes."""
    service_id: str
    name: str
    minutes_per_unit: int
    is_subscription: bool = True

    def __post_init__(self) -> None:
        if self.minutes_per_unit <= 0:
            raise ValueError(
                f"Service {self.service_id} needs positive minutes per unit, "
                f"got {self.minutes_per_unit}"
            )


@dataclass(frozen=True)
class ServiceRecord:
    """Services of one kind performed by a barber on a given date.

    A negative quantity is a compensating correction of earlier records.
    """
    barber_id: str
    service_id: str
    record_date: date
    quantity: int
    month_key: str
    record_id: Optional[str] = None

    def __post_init__(self) -> None:
        derived = month_key(self.record_date)
        if self.month_key != derived:
            raise ValueError(
                f"Month key {self.month_key} does not match record date "
                f"{self.record_date.isoformat()} (expected {derived})"
            )

    @staticmethod
    def create(
        barber_id: str,
        service_id: str,
        record_date: date,
        quantity: int = 1,
        record_id: Optional[str] = None,
    ) -> ServiceRecord:
        """Create a record, deriving its month key from ``record_date``."""
        return ServiceRecord(
            barber_id=barber_id,
            service_id=service_id,
            record_date=record_date,
            quantity=quantity,
            month_key=month_key(record_date),
            record_id=record_id,
        )


@dataclass(frozen=True)
class CommissionResult:
    """A barber's commission for a period.

    participation_rate is kept at full precision; revenue_share and
    commission_value are rounded to currency precision.
    """
    barber: Barber
    minutes_worked: int
    participation_rate: Decimal
    revenue_share: Decimal
    commission_value: Decimal

    @property
    def barber_id(self) -> str:
        return self.barber.barber_id


@dataclass(frozen=True)
class CommissionReport:
    """Full breakdown of a commission distribution.

    Invariant: when total_minutes > 0, |total_commission - pool_value| is at
    most 0.01 per barber.
    """
    month_key: Optional[str]
    total_revenue: Decimal
    commission_pct: Decimal
    pool_value: Decimal
    total_minutes: int
    results: list[CommissionResult] = field(default_factory=list)

    @property
    def total_commission(self) -> Decimal:
        return sum((r.commission_value for r in self.results), Decimal("0"))

    @property
    def rounding_drift(self) -> Decimal:
        """Difference between the paid total and the exact pool value."""
        if self.total_minutes <= 0:
            return Decimal("0")
        return self.total_commission - self.pool_value
