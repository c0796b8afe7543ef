# sshdeck/gateways/actions.py

from typing import Any, Dict, Optional

from ..utils.exceptions import NegotiationError
from ..utils.logger import get_logger
from .persistence import Invoker


class ConnectionActionGateway:
    """Typed call surface to the connection-negotiation service.

    Each verb is issued exactly once per call; whether the service treats a
    repeated verb as idempotent is not assumed anywhere in the stores.
    """

    def __init__(self, invoker: Invoker):
        self.logger = get_logger("sshdeck.gateways.actions")
        self._invoke = invoker

    async def _call(self, command: str, verb: str, target: str, **args: Any) -> Any:
        self.logger.debug(f"{command} -> {target}")
        try:
            return await self._invoke(command, args)
        except NegotiationError:
            raise
        except Exception as e:
            self.logger.warning(f"{command} for '{target}' failed: {e}")
            raise NegotiationError(verb, target, str(e)) from e

    async def connect(self, session_id: str, secret: Optional[str] = None) -> None:
        await self._call(
            "connect_session", "connect", session_id,
            session_id=session_id, password=secret,
        )

    async def disconnect(self, session_id: str) -> None:
        await self._call(
            "disconnect_session", "disconnect", session_id, session_id=session_id
        )

    async def add_forward(self, config: Dict[str, Any]) -> None:
        await self._call(
            "add_port_forward", "add forward", config.get("id", ""), config=config
        )

    async def remove_forward(self, forward_id: str) -> None:
        await self._call(
            "remove_port_forward", "remove forward", forward_id, forward_id=forward_id
        )

    async def toggle_forward(self, forward_id: str, active: bool) -> None:
        await self._call(
            "toggle_port_forward", "toggle forward", forward_id,
            forward_id=forward_id, active=active,
        )

    async def generate_key(
        self, name: str, algorithm: str, passphrase: Optional[str] = None
    ) -> str:
        """Ask the key service for a new key pair; returns the public key text."""
        public_key = await self._call(
            "generate_ssh_key", "generate key", name,
            name=name, type=algorithm, passphrase=passphrase,
        )
        return str(public_key)

    async def fingerprint(self, public_key: str) -> str:
        return str(
            await self._call(
                "ssh_key_fingerprint", "fingerprint", "public key", public_key=public_key
            )
        )

    async def import_key(self, path: str, name: str) -> None:
        await self._call("import_ssh_key", "import key", path, path=path, name=name)
