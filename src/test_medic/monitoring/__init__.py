"""Test health monitoring."""

from .monitor import TestMonitor, health_score
from .storage import InMemoryStorage, JsonFileStorage, MonitorStorage

__all__ = ["TestMonitor", "health_score", "MonitorStorage", "JsonFileStorage", "InMemoryStorage"]
