"""Barbershop monthly rotation queue ("lista da vez") and commission engine."""

__version__ = "0.1.0"
