# sshdeck/__init__.py
"""Client-side entity cache of the SSH Deck session manager."""

from .app import CacheContext, create_cache_context
from .settings.config import AppConstants

__version__ = AppConstants.APP_VERSION

__all__ = ["CacheContext", "create_cache_context", "__version__"]
