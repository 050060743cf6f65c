"""Router configuration: settings and inventory."""
from .inventory import RouterInventory
from .settings import RouterConfig

__all__ = ["RouterConfig", "RouterInventory"]
