"""Actions module - resilient element resolution and interactions."""

from .resilient import FormField, ResilientActions, with_self_healing
from .resolver import SelectorResolver, strategies_for

__all__ = ["FormField", "ResilientActions", "with_self_healing", "SelectorResolver", "strategies_for"]
