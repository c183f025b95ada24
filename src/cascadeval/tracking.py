"""Per-run bookkeeping that keeps one traversal pass terminating and non-redundant.

Two trackers live here:

* :class:`BeanTracker` answers "has this bean already been validated for this
  group somewhere in the same traversal lineage?".  It is what stops the walker
  from recursing forever through cyclic references.
* :class:`RuleTracker` answers "has this exact multi-group rule already run for
  this bean at this exact path?".  It keeps a rule active in several groups from
  being evaluated once per group.

Beans and rules are keyed by identity through :class:`IdentityKey`; paths are
keyed by value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cascadeval.path import Path, PathBuilder, as_path

if TYPE_CHECKING:
    from collections.abc import Hashable

    from cascadeval.metadata import RuleMetadata

_module_logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class IdentityKey:
    """Dictionary key comparing the wrapped object by identity.

    Holds a strong reference so the object's ``id()`` cannot be reused by
    another object while the key is alive.
    """

    __slots__ = ("_hash", "obj")

    def __init__(self, obj: Any) -> None:
        self.obj = obj
        self._hash = id(obj)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IdentityKey):
            return NotImplemented
        return self.obj is other.obj

    def __hash__(self) -> int:
        return self._hash

    def __repr__(self) -> str:
        return f"IdentityKey({type(self.obj).__name__}@{self._hash:#x})"


@dataclass(frozen=True)
class ProcessedGroupUnit:
    """A bean validated for a group at least once during the run."""

    bean: IdentityKey
    group: Hashable


@dataclass(frozen=True)
class ProcessedPathUnit:
    """A multi-group rule evaluated for a bean at one exact path."""

    bean: IdentityKey
    rule: IdentityKey
    path: Path


# ---------------------------------------------------------------------------
# Cycle / group tracking
# ---------------------------------------------------------------------------


class BeanTracker:
    """Decides whether a (bean, group, path) triple has effectively been validated.

    A bean counts as handled only if it was marked for the same group *and*
    one of the paths it was marked at (for any group) lies on the same
    lineage as the queried path: either path is the root, or one is a prefix
    of the other.  A bean reached twice through unrelated sibling chains is
    therefore validated at both places, while re-entering it through a cycle
    is caught.

    The root shortcut is conservative: once a bean was seen at the root it is
    handled everywhere, which guarantees termination for roots that reference
    themselves.
    """

    def __init__(self, *, enabled: bool = True, logger: logging.Logger | None = None) -> None:
        self._logger = logger if logger is not None else _module_logger
        self._enabled = enabled
        self._group_units: set[ProcessedGroupUnit] = set()
        self._paths_per_bean: dict[IdentityKey, set[Path]] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    def already_handled(self, bean: object, group: Hashable, path: Path | PathBuilder) -> bool:
        if not self._enabled:
            return False

        key = IdentityKey(bean)
        if ProcessedGroupUnit(key, group) not in self._group_units:
            return False

        handled = self._is_on_processed_lineage(key, as_path(path))
        if handled:
            self._logger.debug("Bean %r already validated for group %r at %s", key, group, path)
        return handled

    def mark_handled(self, bean: object, group: Hashable, path: Path | PathBuilder) -> None:
        if not self._enabled:
            return

        key = IdentityKey(bean)
        self._group_units.add(ProcessedGroupUnit(key, group))
        # The live builder keeps changing after this call, so store a snapshot.
        self._paths_per_bean.setdefault(key, set()).add(as_path(path))

    def _is_on_processed_lineage(self, key: IdentityKey, path: Path) -> bool:
        paths = self._paths_per_bean.get(key)
        if not paths:
            return False
        for seen in paths:
            if path.is_root or seen.is_root or seen.is_prefix_of(path) or path.is_prefix_of(seen):
                return True
        return False


# ---------------------------------------------------------------------------
# Multi-group rule deduplication
# ---------------------------------------------------------------------------


class RuleTracker:
    """Prevents re-running a multi-group rule for the same bean and exact path.

    Rules active in a single group are exempt: within one traversal they can
    only be reached once per path, so both operations ignore them.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger if logger is not None else _module_logger
        self._units: set[ProcessedPathUnit] = set()

    def already_evaluated(
        self, bean: object, path: Path | PathBuilder, rule: RuleMetadata
    ) -> bool:
        if rule.defined_for_one_group_only:
            return False
        evaluated = self._unit(bean, path, rule) in self._units
        if evaluated:
            self._logger.debug("Rule %r already evaluated at %s", rule.name, path)
        return evaluated

    def mark_evaluated(self, bean: object, path: Path | PathBuilder, rule: RuleMetadata) -> None:
        if rule.defined_for_one_group_only:
            return
        self._units.add(self._unit(bean, path, rule))

    def __len__(self) -> int:
        return len(self._units)

    @staticmethod
    def _unit(bean: object, path: Path | PathBuilder, rule: RuleMetadata) -> ProcessedPathUnit:
        return ProcessedPathUnit(IdentityKey(bean), IdentityKey(rule), as_path(path))
