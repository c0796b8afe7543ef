# sshdeck/app.py
"""
Wiring of the entity cache.

``create_cache_context`` builds the gateways and the three stores around
the invokers supplied by the host application and connects the stores to
each other. There are no module-level singletons: every context is
independent, which is what the tests rely on.

Usage:
    context = create_cache_context(invoke)
    await context.start()
    context.start_auto_refresh()
    ...
    await context.shutdown()
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional

from .core.tasks import BackgroundTasks, run_periodically
from .gateways.actions import ConnectionActionGateway
from .gateways.persistence import Invoker, PersistenceGateway
from .settings.config import CacheSettings
from .stores.forwards import ForwardStore
from .stores.keys import KeyStore
from .stores.sessions import SessionStore
from .utils.logger import get_logger


@dataclass
class CacheContext:
    """Everything one window of the application needs to talk to its data."""

    settings: CacheSettings
    persistence: PersistenceGateway
    actions: ConnectionActionGateway
    sessions: SessionStore
    keys: KeyStore
    forwards: ForwardStore
    tasks: BackgroundTasks = field(default_factory=BackgroundTasks)

    def __post_init__(self):
        self.logger = get_logger("sshdeck.app")
        self._auto_refresh: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Initial load. Session loading errors propagate; the others fail soft."""
        await self.sessions.init()
        await asyncio.gather(self.keys.refresh(), self.forwards.refresh())
        self.logger.info("Entity cache ready")

    async def refresh_all(self) -> bool:
        results = await asyncio.gather(
            self.sessions.refresh(), self.keys.refresh(), self.forwards.refresh()
        )
        return all(results)

    def start_auto_refresh(self, interval: Optional[float] = None) -> Optional[asyncio.Task]:
        if self._auto_refresh is not None and not self._auto_refresh.done():
            self.logger.debug("Auto-refresh already running")
            return self._auto_refresh
        interval = interval or self.settings.refresh_interval
        self._auto_refresh = self.tasks.spawn(
            run_periodically(interval, self.refresh_all, "auto-refresh"),
            name="auto-refresh",
        )
        return self._auto_refresh

    def stop_auto_refresh(self) -> None:
        if self._auto_refresh is not None:
            self._auto_refresh.cancel()
            self._auto_refresh = None

    def dispatch(self, coro: Awaitable[Any], name: Optional[str] = None) -> Optional[asyncio.Task]:
        """Run a store intent without awaiting it (view callbacks use this)."""
        return self.tasks.spawn(coro, name=name)

    async def shutdown(self, wait: bool = False) -> None:
        self.stop_auto_refresh()
        await self.tasks.shutdown(wait=wait)
        self.logger.info("Entity cache shut down")


def _wire_stores(sessions: SessionStore, forwards: ForwardStore) -> None:
    def on_session_removed(_store, session_id):
        forwards.drop_session(session_id)

    def on_forwards_changed(_store, session_id):
        sessions.sync_forwards(session_id, forwards.for_session(session_id))

    sessions.connect("session-removed", on_session_removed)
    forwards.connect("forwards-changed", on_forwards_changed)


def create_cache_context(
    persistence_invoker: Invoker,
    action_invoker: Optional[Invoker] = None,
    settings: Optional[CacheSettings] = None,
) -> CacheContext:
    """
    Build a ready-to-start cache.

    ``action_invoker`` defaults to ``persistence_invoker`` for hosts that
    route every command through one channel.
    """
    if settings is None:
        settings = CacheSettings.from_env()
    settings.apply_logging()

    persistence = PersistenceGateway(persistence_invoker)
    actions = ConnectionActionGateway(action_invoker or persistence_invoker)
    sessions = SessionStore(persistence, actions)
    keys = KeyStore(persistence, actions)
    forwards = ForwardStore(persistence, actions, sessions)
    _wire_stores(sessions, forwards)

    return CacheContext(
        settings=settings,
        persistence=persistence,
        actions=actions,
        sessions=sessions,
        keys=keys,
        forwards=forwards,
    )
