"""
Tracking units of the in-memory data context.

An ``EntityNode`` wraps one entity together with the relationships discovered
on it when it was wrapped, and the detach operation of the edge through which
it was first reached. Detach operations are plain descriptors; the only code
that acts on them is ``execute_detach``.
"""
import logging
from collections import deque
from enum import Enum
from typing import Any, List, Optional, Type, TYPE_CHECKING

from pydantic import BaseModel, Field, ConfigDict

from graphstage.context.errors import DetachError

if TYPE_CHECKING:
    from graphstage.context.discovery import SupportsDiscovery

logger = logging.getLogger("RelationshipDiscoverer")


class RelationshipKind(str, Enum):
    """Shape of the slot a relationship lives in."""
    SINGULAR = "singular"
    PLURAL = "plural"


class DetachOperation(BaseModel):
    """
    Describes how to sever one edge from its owner.

    Attributes:
        kind: Singular slot or plural collection
        owner: The parent entity (excluded from serialization)
        owner_id: Identity of the parent
        slot: Attribute name on the parent
        target: The child entity the edge points to (excluded from serialization)
        target_id: Identity of the child
    """
    kind: RelationshipKind
    owner: Any = Field(exclude=True)
    owner_id: int
    slot: str
    target: Any = Field(default=None, exclude=True)
    target_id: Optional[int] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __str__(self) -> str:
        return f"Detach({self.kind.value}, {type(self.owner).__name__}.{self.slot})"

    def __repr__(self) -> str:
        return self.__str__()


class Relationship(BaseModel):
    """A discovered edge from an owner to one child entity."""
    child: Any = Field(exclude=True)
    child_id: int
    detach: DetachOperation

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def create(cls, kind: RelationshipKind, owner: Any, slot: str, child: Any) -> "Relationship":
        return cls(
            child=child,
            child_id=id(child),
            detach=DetachOperation(
                kind=kind,
                owner=owner,
                owner_id=id(owner),
                slot=slot,
                target=child,
                target_id=id(child),
            ),
        )

    @property
    def kind(self) -> RelationshipKind:
        return self.detach.kind

    @property
    def slot(self) -> str:
        return self.detach.slot


class EntityNode(BaseModel):
    """Represents one tracked entity in the data context."""
    entity: Any = Field(exclude=True)
    entity_id: int
    relationships: List[Relationship] = Field(default_factory=list)
    # None for roots
    detach: Optional[DetachOperation] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def wrap(
        cls,
        entity: Any,
        discoverer: "SupportsDiscovery",
        detach: Optional[DetachOperation] = None,
    ) -> "EntityNode":
        """Wrap an entity, taking a snapshot of its direct relationships."""
        return cls(
            entity=entity,
            entity_id=id(entity),
            relationships=list(discoverer.discover(entity)),
            detach=detach,
        )

    def is_type(self, entity_type: Type[Any]) -> bool:
        """Exact runtime type match; subclasses do not count."""
        return type(self.entity) is entity_type

    @property
    def child_ids(self) -> List[int]:
        return [relationship.child_id for relationship in self.relationships]

    @property
    def children(self) -> List[Any]:
        return [relationship.child for relationship in self.relationships]

    def __str__(self) -> str:
        return f"Node({type(self.entity).__name__}, relationships={len(self.relationships)}, root={self.detach is None})"

    def __repr__(self) -> str:
        return self.__str__()


def _assign(owner: Any, slot: str, value: Any) -> None:
    try:
        setattr(owner, slot, value)
    except Exception as e:
        logger.error(f"Failed to assign {type(owner).__name__}.{slot} during detach: {e}")
        raise DetachError(f"Could not assign {type(owner).__name__}.{slot}: {str(e)}") from e


def _rebuild_without(items: Any, target: Any) -> Any:
    """Fresh container of the same type holding every element except ``target``."""
    remaining = (item for item in items if item is not target)
    try:
        if isinstance(items, deque):
            return deque(remaining, maxlen=items.maxlen)
        return type(items)(remaining)
    except Exception as e:
        logger.error(f"Failed to rebuild {type(items).__name__} during detach: {e}")
        raise DetachError(f"Could not rebuild {type(items).__name__} without target: {str(e)}") from e


def execute_detach(operation: DetachOperation) -> None:
    """
    Sever the edge described by ``operation`` on its owner.

    A slot that no longer holds the target, or a collection that no longer
    contains it, is left untouched.
    """
    owner = operation.owner
    try:
        current = getattr(owner, operation.slot)
    except Exception as e:
        logger.error(f"Failed to read {type(owner).__name__}.{operation.slot} during detach: {e}")
        raise DetachError(f"Could not read {type(owner).__name__}.{operation.slot}: {str(e)}") from e

    if operation.kind is RelationshipKind.SINGULAR:
        if current is not operation.target:
            logger.debug(f"{operation} already satisfied")
            return
        _assign(owner, operation.slot, None)
        logger.debug(f"Executed {operation}")
        return

    if current is None or not any(item is operation.target for item in current):
        logger.debug(f"{operation} already satisfied")
        return
    _assign(owner, operation.slot, _rebuild_without(current, operation.target))
    logger.debug(f"Executed {operation}")
