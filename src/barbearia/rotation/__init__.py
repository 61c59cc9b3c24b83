"""Monthly rotation queue: ranks barbers by activity for the next walk-in."""

from barbearia.rotation.ranker import RotationRanker

__all__ = ["RotationRanker"]
