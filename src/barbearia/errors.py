"""Typed caller errors raised by the rotation and commission engines.

The engines perform no I/O, so every failure is a bad-input error. Each
error carries its kind and the offending identifier; presenting a
user-facing message is the caller's job.
"""

from __future__ import annotations


class EngineError(ValueError):
    """Base class for all engine input errors."""
    kind = "engine_error"

    def __init__(self, identifier: str, message: str | None = None) -> None:
        self.identifier = identifier
        super().__init__(message or f"{self.kind}: {identifier}")


class BarberNotFound(EngineError):
    """The barber id is not part of the supplied roster."""
    kind = "barber_not_found"


class InvalidMonth(EngineError):
    """A month key is malformed or does not match the open period."""
    kind = "invalid_month"


class UnknownService(EngineError):
    """A service record references a service absent from the catalog."""
    kind = "unknown_service"
