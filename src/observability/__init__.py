"""Structured logging for the order console."""

from src.observability.logs import SENSITIVE_KEYS, configure_logging, mask_sensitive_data

__all__ = [
    "SENSITIVE_KEYS",
    "configure_logging",
    "mask_sensitive_data",
]
