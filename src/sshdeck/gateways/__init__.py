from .actions import ConnectionActionGateway
from .persistence import Invoker, PersistenceGateway

__all__ = ["ConnectionActionGateway", "Invoker", "PersistenceGateway"]
