"""
Relationship discovery.

Given one entity, enumerate the entities it references directly, together
with a detach operation for each edge. Discovery never recurses; walking the
graph and breaking cycles is the job of ``EntityGraph``.

Slots are classified from their declared annotation when one exists:

- scalar types, ``Literal`` and ``type[...]`` are never relationships
- a collection with exactly one element type is a plural relationship
- mappings and other multi-parameter generics are skipped
- any other class is a singular relationship

Unannotated slots, ``Any`` and unresolved forward references are classified
from the value they currently hold.
"""
import inspect
import logging
import types
from collections import abc, deque
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import (
    Any, Annotated, ClassVar, Dict, ForwardRef, Iterator, Literal, Protocol, Set, Tuple,
    TypeVar, Union, get_args, get_origin, get_type_hints, runtime_checkable
)
from uuid import UUID

from pydantic import BaseModel

from graphstage.context.errors import DiscoveryError
from graphstage.context.node import Relationship, RelationshipKind

SCALAR_TYPES = (
    str, bytes, bytearray, int, float, complex, bool, Enum, Decimal,
    datetime, date, time, timedelta, UUID, PurePath, type(None),
)
NON_ENTITY_TYPES = (
    type, types.FunctionType, types.BuiltinFunctionType, types.MethodType, types.ModuleType,
)
PLURAL_VALUE_TYPES = (list, tuple, set, frozenset, deque)
PLURAL_ORIGINS = {
    list, tuple, set, frozenset, deque,
    abc.Sequence, abc.MutableSequence, abc.Iterable, abc.Collection, abc.Set, abc.MutableSet,
}
# Classes whose own attributes are never slots
_FRAMEWORK_CLASSES = (object, BaseModel)

_NO_ANNOTATION = object()


class SlotShape(Enum):
    """How a slot is treated during discovery."""
    SCALAR = 0
    SINGULAR = 1
    PLURAL = 2
    UNSUPPORTED = 3
    RUNTIME = 4


@runtime_checkable
class SupportsDiscovery(Protocol):
    """Anything that can enumerate an entity's direct relationships."""
    def discover(self, entity: Any) -> Iterator[Relationship]: ...


def is_reference_value(value: Any) -> bool:
    """True if ``value`` is something the context would track as an entity."""
    if value is None:
        return False
    if isinstance(value, SCALAR_TYPES) or isinstance(value, NON_ENTITY_TYPES):
        return False
    if isinstance(value, abc.Mapping) or isinstance(value, PLURAL_VALUE_TYPES):
        return False
    return True


def _unwrap(annotation: Any) -> Any:
    """Strip Optional and Annotated wrappers."""
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            annotation = get_args(annotation)[0]
            continue
        if origin is Union or origin is types.UnionType:
            members = [arg for arg in get_args(annotation) if arg is not type(None)]
            if len(members) == 1:
                annotation = members[0]
                continue
        return annotation


def _is_scalar_annotation(annotation: Any) -> bool:
    if get_origin(annotation) in (Literal, type, ClassVar):
        return True
    return isinstance(annotation, type) and issubclass(annotation, SCALAR_TYPES)


def _is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.split('[', 1)[0].strip() in ('ClassVar', 'typing.ClassVar')
    return annotation is ClassVar or get_origin(annotation) is ClassVar


def classify_annotation(annotation: Any) -> SlotShape:
    """Decide how a declared annotation is treated."""
    annotation = _unwrap(annotation)
    if annotation is Any or isinstance(annotation, (str, ForwardRef, TypeVar)):
        return SlotShape.RUNTIME
    if _is_scalar_annotation(annotation):
        return SlotShape.SCALAR

    origin = get_origin(annotation)
    if origin is None:
        if not isinstance(annotation, type):
            return SlotShape.RUNTIME
        if issubclass(annotation, abc.Mapping):
            return SlotShape.UNSUPPORTED
        # A bare collection type names no element type
        if annotation in PLURAL_ORIGINS or issubclass(annotation, PLURAL_VALUE_TYPES):
            return SlotShape.UNSUPPORTED
        return SlotShape.SINGULAR

    if origin is Union or origin is types.UnionType:
        return SlotShape.RUNTIME

    args = get_args(annotation)
    if origin in PLURAL_ORIGINS or (isinstance(origin, type) and issubclass(origin, PLURAL_VALUE_TYPES)):
        if origin is tuple:
            if len(args) != 2 or args[1] is not Ellipsis:
                return SlotShape.UNSUPPORTED
            args = args[:1]
        if len(args) != 1:
            return SlotShape.UNSUPPORTED
        if _is_scalar_annotation(_unwrap(args[0])):
            return SlotShape.SCALAR
        return SlotShape.PLURAL

    if isinstance(origin, type) and issubclass(origin, abc.Mapping):
        return SlotShape.UNSUPPORTED
    if len(args) > 1:
        return SlotShape.UNSUPPORTED
    if isinstance(origin, type):
        return SlotShape.SINGULAR
    return SlotShape.RUNTIME


def classify_value(value: Any) -> SlotShape:
    """Decide how an unannotated slot is treated from what it holds."""
    if isinstance(value, PLURAL_VALUE_TYPES):
        return SlotShape.PLURAL
    if is_reference_value(value):
        return SlotShape.SINGULAR
    return SlotShape.SCALAR


class RelationshipDiscoverer:
    """
    Enumerates the direct relationships of an entity by inspecting its shape.

    Pydantic models are inspected through ``model_fields``. Other objects are
    inspected through their resolved type hints and their public instance
    attributes. Public properties with a setter are included when
    ``discover_properties`` is set.

    An entity may expose ``get_untracked_fields()`` returning slot names that
    must not be followed.
    """

    def __init__(self, discover_properties: bool = True) -> None:
        self._logger = logging.getLogger("RelationshipDiscoverer")
        self.discover_properties = discover_properties

    def discover(self, entity: Any) -> Iterator[Relationship]:
        """Lazily yield one relationship per referenced child entity."""
        for slot, annotation in self._iter_slots(entity):
            try:
                value = getattr(entity, slot)
            except AttributeError:
                # declared but never assigned
                continue
            except Exception as e:
                self._logger.error(f"Error reading {type(entity).__name__}.{slot}: {e}")
                raise DiscoveryError(f"Could not read {type(entity).__name__}.{slot}: {str(e)}") from e

            shape = SlotShape.RUNTIME if annotation is _NO_ANNOTATION else classify_annotation(annotation)
            if shape is SlotShape.RUNTIME:
                shape = classify_value(value)

            if shape is SlotShape.SINGULAR:
                if is_reference_value(value):
                    self._logger.debug(f"Found entity in attribute {slot}: {type(value).__name__}")
                    yield Relationship.create(RelationshipKind.SINGULAR, entity, slot, value)
            elif shape is SlotShape.PLURAL:
                yield from self._plural(entity, slot, value)

    def _plural(self, entity: Any, slot: str, value: Any) -> Iterator[Relationship]:
        if not isinstance(value, abc.Collection) or isinstance(value, (str, bytes, bytearray, abc.Mapping)):
            return
        for index, item in enumerate(value):
            if is_reference_value(item):
                self._logger.debug(f"Found entity in collection {slot} at index {index}: {type(item).__name__}")
                yield Relationship.create(RelationshipKind.PLURAL, entity, slot, item)

    def _iter_slots(self, entity: Any) -> Iterator[Tuple[str, Any]]:
        """Yield (slot name, annotation) pairs, each name once."""
        untracked = self._untracked_fields(entity)
        seen: Set[str] = set()

        def keep(name: str) -> bool:
            if name.startswith('_') or name in untracked or name in seen:
                return False
            seen.add(name)
            return True

        for name, annotation in self._declared_slots(entity).items():
            if keep(name):
                yield name, annotation

        if not isinstance(entity, BaseModel):
            for name in list(getattr(entity, '__dict__', {})):
                if keep(name):
                    yield name, _NO_ANNOTATION

        if self.discover_properties:
            for name, annotation in self._property_slots(entity).items():
                if keep(name):
                    yield name, annotation

    def _declared_slots(self, entity: Any) -> Dict[str, Any]:
        entity_type = type(entity)
        if isinstance(entity, BaseModel):
            return {name: info.annotation for name, info in entity_type.model_fields.items()}
        try:
            hints = get_type_hints(entity_type)
        except NameError as e:
            # Names imported only for type checking stay unresolved
            self._logger.debug(f"Using raw annotations of {entity_type.__name__}: {e}")
            hints = self._raw_annotations(entity_type)
        except Exception as e:
            self._logger.error(f"Cannot resolve annotations of {entity_type.__name__}: {e}")
            raise DiscoveryError(f"Could not resolve annotations of {entity_type.__name__}: {str(e)}") from e
        return {name: hint for name, hint in hints.items() if not _is_class_var(hint)}

    def _raw_annotations(self, entity_type: type) -> Dict[str, Any]:
        """Annotations as written, base classes first."""
        annotations: Dict[str, Any] = {}
        for klass in reversed(entity_type.__mro__):
            if klass in _FRAMEWORK_CLASSES:
                continue
            try:
                annotations.update(inspect.get_annotations(klass))
            except NameError as e:
                # Deferred annotations that cannot be evaluated; slots fall back to instance attributes
                self._logger.debug(f"Skipping annotations of {klass.__name__}: {e}")
        return annotations

    def _property_slots(self, entity: Any) -> Dict[str, Any]:
        slots: Dict[str, Any] = {}
        for klass in type(entity).__mro__:
            if klass in _FRAMEWORK_CLASSES:
                continue
            for name, attr in vars(klass).items():
                if not isinstance(attr, property) or attr.fset is None or name in slots:
                    continue
                returns = inspect.signature(attr.fget).return_annotation if attr.fget else inspect.Signature.empty
                slots[name] = _NO_ANNOTATION if returns is inspect.Signature.empty else returns
        return slots

    @staticmethod
    def _untracked_fields(entity: Any) -> Set[str]:
        hook = getattr(entity, 'get_untracked_fields', None)
        if callable(hook):
            return set(hook())
        return set()
