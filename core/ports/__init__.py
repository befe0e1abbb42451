"""Persistence ports consumed by the scheduling core."""

from .spot_repository import SpotRepository

__all__ = ["SpotRepository"]
