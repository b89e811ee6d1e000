"""Discovery module - find interactive elements and generate tests for them."""

from .engine import ElementDiscoveryEngine, derive_selector
from .synthesizer import TestSynthesizer, render_module, write_tests

__all__ = ["ElementDiscoveryEngine", "derive_selector", "TestSynthesizer", "render_module", "write_tests"]
