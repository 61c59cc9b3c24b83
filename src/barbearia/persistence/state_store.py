"""State store: JSON snapshot of the barber roster and service catalog.

Rotation events and service records live in the event log; this store
only keeps the slowly changing registries. Writes go to a temporary file
that is then renamed over the snapshot, so a crash never leaves a
half-written file behind.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from barbearia.models.commission import Service
from barbearia.models.rotation import Barber
from barbearia.roster import BarberRoster, ServiceCatalog

logger = logging.getLogger(__name__)


class StateStore:
    """Loads and saves the roster and catalog as one JSON document."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    def _read(self) -> dict[str, Any]:
        if not self._storage_path.exists():
            return {}
        with self._storage_path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def load_roster(self) -> BarberRoster:
        data = self._read()
        return BarberRoster([
            Barber(
                barber_id=item["barber_id"],
                name=item["name"],
                active=bool(item.get("active", True)),
            )
            for item in data.get("barbers", [])
        ])

    def load_catalog(self) -> ServiceCatalog:
        data = self._read()
        return ServiceCatalog([
            Service(
                service_id=item["service_id"],
                name=item["name"],
                minutes_per_unit=int(item["minutes_per_unit"]),
                is_subscription=bool(item.get("is_subscription", True)),
            )
            for item in data.get("services", [])
        ])

    def save(self, roster: BarberRoster, catalog: ServiceCatalog) -> None:
        """Persist both registries. Raises OSError on write failure."""
        document = {
            "barbers": [
                {"barber_id": b.barber_id, "name": b.name, "active": b.active}
                for b in roster.all_barbers()
            ],
            "services": [
                {
                    "service_id": s.service_id,
                    "name": s.name,
                    "minutes_per_unit": s.minutes_per_unit,
                    "is_subscription": s.is_subscription,
                }
                for s in catalog.all_services()
            ],
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(document, handle, indent=2, sort_keys=True, ensure_ascii=False)
        os.replace(tmp_path, self._storage_path)
        logger.debug(
            "Saved %d barbers and %d services to %s",
            roster.count, catalog.count, self._storage_path,
        )
