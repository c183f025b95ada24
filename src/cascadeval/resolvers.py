"""Traversable resolvers and clock providers the walker is configured with."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from cascadeval.path import Path, PathNode

ClockProvider = Callable[[], datetime]


class TraversableResolver(Protocol):
    """Decides which properties the walker may read and descend into."""

    def is_reachable(
        self, bean: object, node: PathNode, root_type: type | None, path: Path
    ) -> bool: ...

    def is_cascadable(
        self, bean: object, node: PathNode, root_type: type | None, path: Path
    ) -> bool: ...


class TraverseAll:
    """Every property is reachable and cascadable."""

    def is_reachable(
        self, bean: object, node: PathNode, root_type: type | None, path: Path
    ) -> bool:
        return True

    def is_cascadable(
        self, bean: object, node: PathNode, root_type: type | None, path: Path
    ) -> bool:
        return True


class SkipProperties:
    """Treats the named properties as unreachable anywhere in the graph."""

    def __init__(self, names: set[str] | frozenset[str]) -> None:
        self.names = frozenset(names)

    def is_reachable(
        self, bean: object, node: PathNode, root_type: type | None, path: Path
    ) -> bool:
        return node.name not in self.names

    def is_cascadable(
        self, bean: object, node: PathNode, root_type: type | None, path: Path
    ) -> bool:
        return node.name not in self.names


def utc_clock() -> datetime:
    """Default clock provider."""
    return datetime.now(timezone.utc)
