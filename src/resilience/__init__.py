"""Concurrency helpers.

This module contains:
- InFlight: collapses concurrent calls that share a key into one operation
"""

from src.resilience.inflight import InFlight

__all__ = ["InFlight"]
