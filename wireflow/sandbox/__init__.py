# wireflow/sandbox/__init__.py
from .cleanup import CleanupStack
from .dev_server import DevServer, ensure_dev_server, is_server_reachable

__all__ = ["CleanupStack", "DevServer", "ensure_dev_server", "is_server_reachable"]
