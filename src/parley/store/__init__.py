"""Preference store module for parley.

Provides async key-value persistence with change notification.
"""

from .base import PreferenceStore
from .factory import create_preference_store
from .in_memory import InMemoryPreferenceStore

__all__ = [
    "InMemoryPreferenceStore",
    "PreferenceStore",
    "create_preference_store",
]
