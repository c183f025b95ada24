"""Traversal paths: immutable snapshots and the live builder the walker mutates."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterator


class NodeKind(enum.Enum):
    """Kind of a single traversal step."""

    ROOT = "root"
    PROPERTY = "property"
    INDEX = "index"
    KEY = "key"


@dataclass(frozen=True)
class PathNode:
    """One step of a path: its kind plus the property name, index or key."""

    kind: NodeKind
    name: Hashable = None

    def __str__(self) -> str:
        if self.kind is NodeKind.ROOT:
            return ""
        if self.kind is NodeKind.PROPERTY:
            return str(self.name)
        return f"[{self.name!r}]" if self.kind is NodeKind.KEY else f"[{self.name}]"


ROOT_NODE = PathNode(NodeKind.ROOT)


class Path:
    """Immutable, hashable sequence of :class:`PathNode` steps.

    Two paths are equal when their node sequences are equal, regardless of
    which builder or snapshot produced them.
    """

    __slots__ = ("_hash", "_nodes")

    def __init__(self, nodes: tuple[PathNode, ...] = (ROOT_NODE,)) -> None:
        self._nodes = tuple(nodes)
        self._hash = hash(self._nodes)

    @classmethod
    def root(cls) -> Path:
        return cls((ROOT_NODE,))

    @property
    def nodes(self) -> tuple[PathNode, ...]:
        return self._nodes

    @property
    def is_root(self) -> bool:
        """True when the path is exactly the single root node."""
        return len(self._nodes) == 1 and self._nodes[0].kind is NodeKind.ROOT

    @property
    def leaf(self) -> PathNode:
        return self._nodes[-1]

    def is_prefix_of(self, other: Path) -> bool:
        """Return True if every node of this path matches *other* position by position."""
        if len(self._nodes) > len(other._nodes):
            return False
        return all(mine == theirs for mine, theirs in zip(self._nodes, other._nodes))

    def child(self, node: PathNode) -> Path:
        """Return a new path with *node* appended."""
        return Path((*self._nodes, node))

    def with_property(self, name: str) -> Path:
        return self.child(PathNode(NodeKind.PROPERTY, name))

    def __iter__(self) -> Iterator[PathNode]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Path):
            return NotImplemented
        return self._nodes == other._nodes

    def __hash__(self) -> int:
        return self._hash

    def __str__(self) -> str:
        parts: list[str] = []
        for node in self._nodes:
            text = str(node)
            if not text:
                continue
            if parts and node.kind is NodeKind.PROPERTY:
                parts.append(".")
            parts.append(text)
        return "".join(parts)

    def __repr__(self) -> str:
        return f"Path({str(self)!r})"


class PathBuilder:
    """Mutable path tracking the walker's current position.

    The builder is pushed and popped in place as traversal descends and
    returns, so it must never be stored.  Call :meth:`snapshot` to obtain an
    independent :class:`Path`.
    """

    def __init__(self) -> None:
        self._nodes: list[PathNode] = [ROOT_NODE]

    def push(self, node: PathNode) -> None:
        self._nodes.append(node)

    def push_property(self, name: str) -> None:
        self.push(PathNode(NodeKind.PROPERTY, name))

    def push_index(self, index: int) -> None:
        self.push(PathNode(NodeKind.INDEX, index))

    def push_key(self, key: Hashable) -> None:
        self.push(PathNode(NodeKind.KEY, key))

    def pop(self) -> PathNode:
        if len(self._nodes) == 1:
            msg = "cannot pop the root node"
            raise IndexError(msg)
        return self._nodes.pop()

    def snapshot(self) -> Path:
        return Path(tuple(self._nodes))

    def __len__(self) -> int:
        return len(self._nodes)

    def __str__(self) -> str:
        return str(self.snapshot())


def as_path(path: Path | PathBuilder) -> Path:
    """Return an immutable snapshot of *path*."""
    if isinstance(path, PathBuilder):
        return path.snapshot()
    return path
