# sshdeck/core/__init__.py
"""Core infrastructure modules for SSH Deck."""

from .tasks import BackgroundTasks, KeyedLock, run_periodically

__all__ = ["BackgroundTasks", "KeyedLock", "run_periodically"]
