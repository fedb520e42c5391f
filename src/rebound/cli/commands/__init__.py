"""Command implementations for the rebound CLI."""

from .backoff import backoff
from .classify import classify
from .probe import probe

__all__ = ["backoff", "classify", "probe"]
