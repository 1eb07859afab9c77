# Domain Entities
# Pure business objects with no external dependencies
from .entitlement import Entitlement

__all__ = [
    "Entitlement",
]
