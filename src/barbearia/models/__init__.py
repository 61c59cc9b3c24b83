"""Core data models for the rotation queue and commission engine."""

from barbearia.models.rotation import (
    Barber,
    MonthlyTally,
    RankedBarber,
    RotationEvent,
    RotationEventKind,
    RotationSummary,
)
from barbearia.models.commission import (
    CommissionReport,
    CommissionResult,
    Service,
    ServiceRecord,
)

__all__ = [
    "Barber",
    "MonthlyTally",
    "RankedBarber",
    "RotationEvent",
    "RotationEventKind",
    "RotationSummary",
    "CommissionReport",
    "CommissionResult",
    "Service",
    "ServiceRecord",
]
