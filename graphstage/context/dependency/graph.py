"""
Implementation of the entity graph walk.

This module materializes the set of nodes reachable from one or more root
entities, deduplicated by identity, and reports reference cycles found along
the way without modifying the underlying objects.
"""
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, Field, ConfigDict

from graphstage.context.discovery import SupportsDiscovery
from graphstage.context.node import DetachOperation, EntityNode

logger = logging.getLogger("EntityGraph")


class CycleStatus(Enum):
    """Status of cycle detection."""
    NO_CYCLE = 0
    CYCLE_DETECTED = 1


class EntityGraph(BaseModel):
    """
    Reachable node set of a group of roots.

    This class provides methods to:
    1. Walk the live object graph from a list of roots (depth-first, in discovery order)
    2. Restrict a walk to a known set of identities
    3. Detect cycles among the discovered edges
    4. Look up nodes and entities by identity
    """
    nodes: Dict[int, EntityNode] = Field(default_factory=dict)  # Map of entity identity to its node
    cycles: List[List[int]] = Field(default_factory=list)      # List of detected cycles

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def build_graph(
        self,
        roots: Iterable[Any],
        discoverer: SupportsDiscovery,
        within: Optional[Set[int]] = None,
    ) -> CycleStatus:
        """
        Build the node set reachable from ``roots``.

        Args:
            roots: Entities to start from, in order
            discoverer: Enumerates the direct relationships of each entity
            within: If given, only entities whose identity is in this set are visited

        Returns:
            CycleStatus indicating if any cycles were detected
        """
        self.nodes.clear()
        self.cycles.clear()

        root_list = list(roots)
        logger.debug(f"Building entity graph from {len(root_list)} roots")

        # Stack of (entity, detach of the edge it was reached through)
        pending: List[Tuple[Any, Optional[DetachOperation]]] = [(root, None) for root in reversed(root_list)]
        while pending:
            entity, detach = pending.pop()
            entity_id = id(entity)

            if entity_id in self.nodes:
                continue
            if within is not None and entity_id not in within:
                continue

            node = EntityNode.wrap(entity, discoverer, detach)
            self.nodes[entity_id] = node

            # Reversed so children pop in discovery order
            for relationship in reversed(node.relationships):
                if relationship.child_id not in self.nodes:
                    pending.append((relationship.child, relationship.detach))

        self._find_cycles()

        logger.info(f"Built entity graph with {len(self.nodes)} nodes")
        if self.cycles:
            logger.debug(f"Detected {len(self.cycles)} cycles in the graph")
            return CycleStatus.CYCLE_DETECTED
        return CycleStatus.NO_CYCLE

    def _find_cycles(self) -> None:
        """Record every back edge found by a depth-first pass over the snapshot edges."""
        on_path: Set[int] = set()
        finished: Set[int] = set()

        for start_id in self.nodes:
            if start_id in finished:
                continue
            path: List[int] = [start_id]
            on_path.add(start_id)
            stack = [iter(self.nodes[start_id].child_ids)]

            while stack:
                advanced = False
                for child_id in stack[-1]:
                    if child_id not in self.nodes or child_id in finished:
                        continue
                    if child_id in on_path:
                        cycle = path[path.index(child_id):] + [child_id]
                        logger.debug(f"Detected cycle: {cycle}")
                        self.cycles.append(cycle)
                        continue
                    path.append(child_id)
                    on_path.add(child_id)
                    stack.append(iter(self.nodes[child_id].child_ids))
                    advanced = True
                    break

                if not advanced:
                    stack.pop()
                    done = path.pop()
                    on_path.discard(done)
                    finished.add(done)

    def get_node(self, entity_id: int) -> Optional[EntityNode]:
        """Get a node by entity identity."""
        return self.nodes.get(entity_id)

    def find_entity_by_id(self, entity_id: int) -> Optional[Any]:
        """Find an entity by its identity."""
        if entity_id in self.nodes:
            return self.nodes[entity_id].entity
        return None

    def get_cycles(self) -> List[List[int]]:
        """Get all detected cycles in the graph."""
        return self.cycles

    def __contains__(self, entity: Any) -> bool:
        return id(entity) in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)
