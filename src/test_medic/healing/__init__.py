"""Healing module - failure classification and test source repair."""

from .classifier import FailureClassifier
from .repair import RepairEngine

__all__ = ["FailureClassifier", "RepairEngine"]
