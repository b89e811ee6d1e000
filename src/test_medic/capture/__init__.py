"""Capture module for reading test outcomes from runner reports."""

from .junit import JUnitCase, failures_from_cases, parse_junit, read_junit

__all__ = ["JUnitCase", "failures_from_cases", "parse_junit", "read_junit"]
