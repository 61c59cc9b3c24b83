"""Barber roster and service catalog: the registries the engines read.

The roster is the source of truth for who takes part in the rotation;
the catalog says how many minutes one unit of each service takes.
Both hand immutable snapshots to the engines.

Invariants enforced:
- Ids and names are never blank.
- Deactivating a barber keeps the entry (commission history survives).
- Services need positive minutes per unit.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from barbearia.errors import BarberNotFound, UnknownService
from barbearia.models.commission import Service
from barbearia.models.rotation import Barber


class BarberRoster:
    """Registry of all barbers, active or not.

    Thread-safety: this class is not thread-safe. The caller must
    synchronise access if used from multiple threads.
    """

    def __init__(self, barbers: Optional[list[Barber]] = None) -> None:
        self._barbers: dict[str, Barber] = {}
        for barber in barbers or []:
            self.register(barber)

    def register(self, barber: Barber) -> Barber:
        """Register a new barber or replace an existing one.

        Raises ValueError if the id or the name is blank.
        """
        canonical_id = barber.barber_id.strip()
        name = barber.name.strip()
        if not canonical_id:
            raise ValueError("Cannot register barber with blank ID")
        if not name:
            raise ValueError(f"Barber {canonical_id} needs a name")
        entry = replace(barber, barber_id=canonical_id, name=name)
        self._barbers[canonical_id] = entry
        return entry

    def set_active(self, barber_id: str, active: bool) -> Barber:
        """Activate or deactivate a barber. Raises BarberNotFound."""
        current = self.require(barber_id)
        updated = replace(current, active=active)
        self._barbers[current.barber_id] = updated
        return updated

    def get(self, barber_id: str) -> Optional[Barber]:
        return self._barbers.get(barber_id.strip())

    def require(self, barber_id: str) -> Barber:
        barber = self.get(barber_id)
        if barber is None:
            raise BarberNotFound(barber_id, f"Barber not found: {barber_id}")
        return barber

    def all_barbers(self) -> list[Barber]:
        return list(self._barbers.values())

    @property
    def count(self) -> int:
        return len(self._barbers)

    @property
    def active_count(self) -> int:
        return sum(1 for b in self._barbers.values() if b.active)


class ServiceCatalog:
    """Registry of services and their duration per unit."""

    def __init__(self, services: Optional[list[Service]] = None) -> None:
        self._services: dict[str, Service] = {}
        for service in services or []:
            self.register(service)

    def register(self, service: Service) -> Service:
        """Register or replace a service. Raises ValueError on blank fields."""
        canonical_id = service.service_id.strip()
        if not canonical_id:
            raise ValueError("Cannot register service with blank ID")
        if not service.name.strip():
            raise ValueError(f"Service {canonical_id} needs a name")
        entry = replace(service, service_id=canonical_id, name=service.name.strip())
        self._services[canonical_id] = entry
        return entry

    def get(self, service_id: str) -> Optional[Service]:
        return self._services.get(service_id.strip())

    def require(self, service_id: str) -> Service:
        service = self.get(service_id)
        if service is None:
            raise UnknownService(service_id, f"Service not in catalog: {service_id}")
        return service

    def all_services(self) -> list[Service]:
        return list(self._services.values())

    @property
    def count(self) -> int:
        return len(self._services)
