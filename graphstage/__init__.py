"""
graphstage: an in-memory object-graph store.

Tracks interconnected entities, discovers their relationships from object
shape, and keeps the stored graph consistent across add, remove and commit.
"""
from graphstage.config import ContextSettings, configure_logging
from graphstage.context import (
    DataContext, InMemoryDataContext, Entity, EntityNode, Relationship,
    RelationshipKind, DetachOperation, RelationshipDiscoverer,
    GraphContextError, DiscoveryError, DetachError,
)

__all__ = [
    "ContextSettings", "configure_logging",
    "DataContext", "InMemoryDataContext", "Entity", "EntityNode", "Relationship",
    "RelationshipKind", "DetachOperation", "RelationshipDiscoverer",
    "GraphContextError", "DiscoveryError", "DetachError",
]
