from .errors import GraphContextError, DiscoveryError, DetachError
from .entity import Entity
from .node import EntityNode, Relationship, RelationshipKind, DetachOperation, execute_detach
from .discovery import RelationshipDiscoverer, SupportsDiscovery, is_reference_value
from .dependency import EntityGraph, CycleStatus
from .storage import DataContext, InMemoryDataContext

__all__ = [
    "GraphContextError", "DiscoveryError", "DetachError",
    "Entity",
    "EntityNode", "Relationship", "RelationshipKind", "DetachOperation", "execute_detach",
    "RelationshipDiscoverer", "SupportsDiscovery", "is_reference_value",
    "EntityGraph", "CycleStatus",
    "DataContext", "InMemoryDataContext",
]
