"""Commission subsystem: minutes-based allocator and report rendering."""

from barbearia.commission.allocator import CommissionAllocator
from barbearia.commission.report import export_csv, format_minutes

__all__ = [
    "CommissionAllocator",
    "export_csv",
    "format_minutes",
]
