"""Policy resolver: loads and validates the engine policy configuration.

The policy is a single JSON document (``engine_policy.json``) with a
``rotation`` and a ``commission`` section. Engines never read files
themselves; they receive a resolver and ask it for typed parameters.

Validation is fail-closed: a resolver built from a config directory
refuses to exist if the policy has violations.
"""

from __future__ import annotations

import copy
import json
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

POLICY_FILENAME = "engine_policy.json"

TIE_BREAK_NAME = "name"
TIE_BREAK_TURNS_PASSED = "turns_passed"
TIE_BREAK_MODES = frozenset({TIE_BREAK_NAME, TIE_BREAK_TURNS_PASSED})

ROUNDING_MODES = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
}

DEFAULT_POLICY: dict[str, Any] = {
    "rotation": {
        "tie_break": TIE_BREAK_NAME,
        "count_passed_turns": True,
        "collapse_duplicate_passes": False,
    },
    "commission": {
        "default_percentage": "0.40",
        "rounding": "half_up",
        "subscription_services_only": True,
    },
}


class PolicyResolver:
    """Typed access to the engine policy.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        tie_break = resolver.tie_break()
        rounding = resolver.commission_rounding()

    Missing keys fall back to DEFAULT_POLICY.
    """

    def __init__(self, policy: Optional[dict[str, Any]] = None) -> None:
        merged = copy.deepcopy(DEFAULT_POLICY)
        for section, values in (policy or {}).items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(values)
            else:
                merged[section] = values
        self._policy = merged

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        """Load ``engine_policy.json`` from a directory.

        A missing file yields the default policy. Raises ValueError if the
        file exists but violates the policy invariants.
        """
        path = Path(config_dir) / POLICY_FILENAME
        data: dict[str, Any] = {}
        if path.exists():
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        resolver = cls(data)
        errors = resolver.validate()
        if errors:
            raise ValueError(f"Invalid policy {path}: {'; '.join(errors)}")
        return resolver

    def validate(self) -> list[str]:
        """Return every policy violation found (empty list when valid)."""
        errors: list[str] = []
        rotation = self._policy.get("rotation")
        commission = self._policy.get("commission")
        if not isinstance(rotation, dict):
            errors.append("rotation section must be an object")
            rotation = {}
        if not isinstance(commission, dict):
            errors.append("commission section must be an object")
            commission = {}

        tie_break = rotation.get("tie_break")
        if tie_break not in TIE_BREAK_MODES:
            errors.append(
                f"rotation.tie_break must be one of {sorted(TIE_BREAK_MODES)}, got {tie_break!r}"
            )
        for flag in ("count_passed_turns", "collapse_duplicate_passes"):
            if not isinstance(rotation.get(flag), bool):
                errors.append(f"rotation.{flag} must be a boolean")

        try:
            pct = Decimal(str(commission.get("default_percentage")))
            if not pct.is_finite() or not (Decimal("0") <= pct <= Decimal("1")):
                errors.append(f"commission.default_percentage must be in [0, 1], got {pct}")
        except InvalidOperation:
            errors.append("commission.default_percentage must be a decimal string")

        if commission.get("rounding") not in ROUNDING_MODES:
            errors.append(
                f"commission.rounding must be one of {sorted(ROUNDING_MODES)}, "
                f"got {commission.get('rounding')!r}"
            )
        if not isinstance(commission.get("subscription_services_only"), bool):
            errors.append("commission.subscription_services_only must be a boolean")
        return errors

    def tie_break(self) -> str:
        return self._policy["rotation"]["tie_break"]

    def count_passed_turns(self) -> bool:
        return bool(self._policy["rotation"]["count_passed_turns"])

    def collapse_duplicate_passes(self) -> bool:
        return bool(self._policy["rotation"]["collapse_duplicate_passes"])

    def default_commission_pct(self) -> Decimal:
        return Decimal(str(self._policy["commission"]["default_percentage"]))

    def commission_rounding(self) -> str:
        """Return the decimal rounding constant for commission values."""
        return ROUNDING_MODES[self._policy["commission"]["rounding"]]

    def subscription_services_only(self) -> bool:
        return bool(self._policy["commission"]["subscription_services_only"])

    def as_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._policy)
