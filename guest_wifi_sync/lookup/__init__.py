"""Debounced interactive lookup for scanner and typed token input."""

from .debounced_lookup import CancellationToken, DebouncedLookup, ManualScheduler, ThreadingScheduler

__all__ = ["CancellationToken", "DebouncedLookup", "ManualScheduler", "ThreadingScheduler"]
