# sshdeck/gateways/persistence.py
"""
Typed call surface to the persistence authority.

One coroutine per entity kind and verb. The gateway keeps no state besides
the invoker: no caching, no batching, no retries. Every failure surfaces as
a ``PersistenceError``.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..utils.exceptions import PersistenceError
from ..utils.logger import get_logger

Record = Dict[str, Any]
Invoker = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class PersistenceGateway:
    """Thin async wrapper over the authority's ``db_*`` commands."""

    def __init__(self, invoker: Invoker):
        self.logger = get_logger("sshdeck.gateways.persistence")
        self._invoke = invoker

    async def _call(
        self, command: str, operation: str, entity: str, **args: Any
    ) -> Any:
        self.logger.debug(f"{command} {args if args else ''}".rstrip())
        try:
            return await self._invoke(command, args)
        except PersistenceError:
            raise
        except Exception as e:
            self.logger.warning(f"{command} failed: {e}")
            raise PersistenceError(operation, entity, str(e)) from e

    # Groups

    async def list_groups(self) -> List[Record]:
        return list(await self._call("db_get_groups", "list", "groups") or [])

    async def get_group(self, group_id: str) -> Record:
        return await self._call("db_get_group", "read", "group", id=group_id)

    async def create_group(self, data: Record) -> Record:
        return await self._call("db_create_group", "create", "group", input=data)

    async def update_group(self, group_id: str, data: Record) -> Record:
        return await self._call(
            "db_update_group", "update", "group", id=group_id, input=data
        )

    async def delete_group(self, group_id: str) -> None:
        await self._call("db_delete_group", "delete", "group", id=group_id)

    # Sessions

    async def list_sessions(self) -> List[Record]:
        return list(await self._call("db_get_all_sessions", "list", "sessions") or [])

    async def get_session(self, session_id: str) -> Record:
        return await self._call("db_get_session", "read", "session", id=session_id)

    async def create_session(self, data: Record) -> Record:
        return await self._call("db_create_session", "create", "session", input=data)

    async def update_session(self, session_id: str, data: Record) -> Record:
        return await self._call(
            "db_update_session", "update", "session", id=session_id, input=data
        )

    async def delete_session(self, session_id: str) -> None:
        await self._call("db_delete_session", "delete", "session", id=session_id)

    # SSH keys

    async def list_keys(self) -> List[Record]:
        return list(await self._call("db_get_ssh_keys", "list", "keys") or [])

    async def get_key(self, key_id: str) -> Record:
        return await self._call("db_get_ssh_key", "read", "key", id=key_id)

    async def create_key(self, data: Record) -> Record:
        return await self._call("db_create_ssh_key", "create", "key", input=data)

    async def update_key(self, key_id: str, data: Record) -> Record:
        return await self._call(
            "db_update_ssh_key", "update", "key", id=key_id, input=data
        )

    async def delete_key(self, key_id: str) -> None:
        await self._call("db_delete_ssh_key", "delete", "key", id=key_id)

    # Port forwards

    async def list_forwards(self, session_id: Optional[str] = None) -> List[Record]:
        return list(
            await self._call(
                "db_get_port_forwards", "list", "port forwards", session_id=session_id
            )
            or []
        )

    async def get_forward(self, forward_id: str) -> Record:
        return await self._call(
            "db_get_port_forward", "read", "port forward", id=forward_id
        )

    async def create_forward(self, data: Record) -> Record:
        return await self._call(
            "db_create_port_forward", "create", "port forward", input=data
        )

    async def update_forward(self, forward_id: str, data: Record) -> Record:
        return await self._call(
            "db_update_port_forward", "update", "port forward", id=forward_id, input=data
        )

    async def delete_forward(self, forward_id: str) -> None:
        await self._call("db_delete_port_forward", "delete", "port forward", id=forward_id)
