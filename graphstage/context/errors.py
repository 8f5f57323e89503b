"""Exceptions raised by the in-memory data context."""


class GraphContextError(Exception):
    """Base class for graphstage failures."""


class DiscoveryError(GraphContextError):
    """An entity's slots could not be enumerated or read."""


class DetachError(GraphContextError):
    """A relationship could not be severed on its owner."""
