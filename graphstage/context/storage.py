"""
In-memory data context.

The context keeps a flat, insertion-ordered set of tracked nodes keyed by
entity identity, plus the roots that were explicitly added. Relationships are
re-derived from live object state on ``remove`` and ``commit``, so entities
that lose their last incoming edge are purged even when the edge was severed
outside the context.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol, Set, Type, TypeVar

from graphstage.config import LOGGER_NAMES, ContextSettings
from graphstage.context.dependency.graph import CycleStatus, EntityGraph
from graphstage.context.discovery import RelationshipDiscoverer, SupportsDiscovery, is_reference_value
from graphstage.context.node import EntityNode, execute_detach

T = TypeVar('T')


def _describe(entity: Any) -> str:
    return f"{type(entity).__name__}@{id(entity):#x}"


###############################################################################
# 1) The Context Protocol
###############################################################################

class DataContext(Protocol):
    """
    Interface the query, persistence and unit-of-work layers consume.
    """

    def add(self, entity: Any) -> None: ...
    def remove(self, entity: Any) -> None: ...
    def commit(self) -> None: ...
    def query(self, entity_type: Type[T]) -> List[T]: ...
    def get_context_status(self) -> Dict[str, Any]: ...
    def clear(self) -> None: ...


###############################################################################
# 2) The InMemoryDataContext
###############################################################################

class InMemoryDataContext(DataContext):
    """
    Tracks entity graphs in memory.

    - ``add`` stores an entity and everything reachable from it
    - ``remove`` severs the edge that introduced an entity and purges whatever
      is no longer reachable from a root
    - ``commit`` re-walks every root against live state, adopts new entities
      and purges orphans
    - ``query`` returns tracked entities of an exact type in store order

    Not safe for concurrent use.
    """

    def __init__(
        self,
        settings: Optional[ContextSettings] = None,
        discoverer: Optional[SupportsDiscovery] = None,
    ) -> None:
        self._logger = logging.getLogger("InMemoryDataContext")
        self.settings = settings if settings is not None else ContextSettings()
        if self.settings.log_level:
            for name in LOGGER_NAMES:
                logging.getLogger(name).setLevel(self.settings.log_level)
        self._discoverer: SupportsDiscovery = discoverer if discoverer is not None else RelationshipDiscoverer(
            discover_properties=self.settings.discover_properties
        )
        self._nodes: Dict[int, EntityNode] = {}
        self._roots: Dict[int, Any] = {}

    def add(self, entity: Any) -> None:
        """Track ``entity`` as a root along with its reachable graph."""
        if not is_reference_value(entity):
            self._logger.error(f"Cannot track value of type {type(entity).__name__}")
            raise TypeError(f"Only reference-typed entities can be tracked, got {type(entity).__name__}")

        graph = self._walk([entity])
        added = 0
        for entity_id, node in graph.nodes.items():
            # First insertion wins
            if entity_id not in self._nodes:
                self._nodes[entity_id] = node
                added += 1
        self._roots.setdefault(id(entity), entity)
        # Roots are never detached from an owner
        self._nodes[id(entity)].detach = None
        self._logger.info(f"Added {_describe(entity)}: {added} new of {len(graph)} reachable entities")

    def remove(self, entity: Any) -> None:
        """
        Detach ``entity`` from its owner and purge everything left unreachable.

        Untracked entities are ignored. A child still referenced by another
        tracked parent survives.
        """
        entity_id = id(entity)
        node = self._nodes.get(entity_id)
        if node is None:
            self._logger.debug(f"Remove of untracked {_describe(entity)} ignored")
            return

        if node.detach is not None:
            execute_detach(node.detach)
        self._roots.pop(entity_id, None)

        survivors = set(self._nodes)
        survivors.discard(entity_id)
        graph = self._walk(self._roots.values(), within=survivors)
        purged = self._purge(set(graph.nodes))
        # Survivors may have lost the owner their detach operation pointed at
        self._refresh(graph)
        self._logger.info(f"Removed {_describe(entity)}: purged {len(purged)} entities")

    def commit(self) -> None:
        """Reconcile tracked state with the live object graph."""
        graph = self._walk(self._roots.values())
        adopted = self._refresh(graph)
        purged = self._purge(set(graph.nodes))
        self._logger.info(f"Commit: adopted {adopted}, purged {len(purged)}, tracking {len(self._nodes)} entities")

    def query(self, entity_type: Type[T]) -> List[T]:
        """All tracked entities whose runtime type is exactly ``entity_type``."""
        return [node.entity for node in self._nodes.values() if node.is_type(entity_type)]

    def get_node(self, entity: Any) -> Optional[EntityNode]:
        return self._nodes.get(id(entity))

    def related(self, entity: Any) -> List[Any]:
        """
        Every tracked entity transitively related to ``entity``.

        Follows the relationship snapshots taken when nodes were wrapped, so
        mutations made since the last add or commit are not reflected.
        """
        start = self._nodes.get(id(entity))
        if start is None:
            return []
        seen: Set[int] = {start.entity_id}
        result: List[Any] = []
        pending = list(reversed(start.relationships))
        while pending:
            relationship = pending.pop()
            child = self._nodes.get(relationship.child_id)
            if child is None or child.entity_id in seen:
                continue
            seen.add(child.entity_id)
            result.append(child.entity)
            pending.extend(reversed(child.relationships))
        return result

    @property
    def roots(self) -> List[Any]:
        return list(self._roots.values())

    def get_context_status(self) -> Dict[str, Any]:
        type_counts: Dict[str, int] = {}
        for node in self._nodes.values():
            nm = type(node.entity).__name__
            type_counts[nm] = type_counts.get(nm, 0) + 1
        return {
            "in_memory": True,
            "entities_by_type": type_counts,
            "node_count": len(self._nodes),
            "root_count": len(self._roots),
        }

    def clear(self) -> None:
        self._nodes.clear()
        self._roots.clear()
        self._logger.info("Cleared data context")

    def __contains__(self, entity: Any) -> bool:
        return id(entity) in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def _walk(self, roots: Any, within: Optional[Set[int]] = None) -> EntityGraph:
        graph = EntityGraph()
        status = graph.build_graph(roots, self._discoverer, within=within)
        if status is CycleStatus.CYCLE_DETECTED and self.settings.log_cycles:
            self._logger.info(f"Detected {len(graph.get_cycles())} reference cycles while walking the graph")
        return graph

    def _refresh(self, graph: EntityGraph) -> int:
        """Replace tracked nodes with the freshly wrapped ones in ``graph``; return how many were new."""
        adopted = 0
        for entity_id, fresh in graph.nodes.items():
            if entity_id in self._roots:
                fresh.detach = None
            if entity_id not in self._nodes:
                adopted += 1
            # Existing keys keep their position in the store
            self._nodes[entity_id] = fresh
        return adopted

    def _purge(self, keep: Set[int]) -> List[Any]:
        """Drop every node whose identity is not in ``keep``."""
        purged: List[Any] = []
        for entity_id in [eid for eid in self._nodes if eid not in keep]:
            node = self._nodes.pop(entity_id)
            purged.append(node.entity)
            self._logger.debug(f"Purged {_describe(node.entity)}")
        return purged
