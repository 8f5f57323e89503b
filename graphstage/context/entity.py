############################################################
# entity.py
############################################################

"""
Optional base class for tracked entities.

The data context tracks any reference-typed object, so inheriting from
``Entity`` is not required. It gives pydantic models a stable identifier and
a compact repr, which keeps log lines readable for cyclic graphs.
"""
from datetime import datetime, timezone
from typing import Set
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class Entity(BaseModel):
    """
    Pydantic base for entities stored in a data context.

    Attributes:
        ecs_id: Unique identifier, a scalar so it is never tracked itself
        created_at: Creation timestamp
    """
    ecs_id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {
        "arbitrary_types_allowed": True,
    }

    def __hash__(self) -> int:
        return hash(self.ecs_id)

    def __eq__(self, other: object) -> bool:
        """Entities are equal if they share an ecs_id."""
        if not isinstance(other, Entity):
            return NotImplemented
        return self.ecs_id == other.ecs_id

    def __repr__(self) -> str:
        """Type name and id only; nested entities would recurse on cycles."""
        return f"{type(self).__name__}({str(self.ecs_id)})"

    def get_untracked_fields(self) -> Set[str]:
        """
        Field names the relationship discoverer must not follow.

        Override in subclasses to hide back-references or caches.
        """
        return set()
