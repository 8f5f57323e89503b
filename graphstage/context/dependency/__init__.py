"""
Entity graph walk.

This module materializes the nodes reachable from a set of roots and detects
circular references without modifying the underlying object model.
"""
from .graph import EntityGraph, CycleStatus

__all__ = ["EntityGraph", "CycleStatus"]
