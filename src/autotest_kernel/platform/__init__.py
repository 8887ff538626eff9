from .backend import BackendClient
from .checkpoints import LAST_GOOD, CheckpointManager
from .consoles import ConsoleService

__all__ = ["LAST_GOOD", "BackendClient", "CheckpointManager", "ConsoleService"]
