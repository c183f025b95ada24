"""Violation records, the builders that shape them, and the per-run collector."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from cascadeval.path import as_path

if TYPE_CHECKING:
    from collections.abc import Hashable, Mapping

    from cascadeval.interpolation import MessageRenderer
    from cascadeval.metadata import RuleMetadata
    from cascadeval.path import Path, PathBuilder

_module_logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Violation:
    """A single failed rule.

    Equality covers ``message``, ``path``, ``rule``, ``invalid_value`` and
    ``group``; the remaining fields are informational.  ``invalid_value`` is
    left out of the hash so unhashable values can still be reported.

    Values are compared by type as well as by ``==``, so ``1``, ``1.0`` and
    ``True`` stay distinct.  Elements nested inside containers still compare
    with plain ``==``.
    """

    message: str
    path: Path
    rule: RuleMetadata | None
    invalid_value: Any = field(hash=False)
    group: Hashable = None
    invalid_value_type: type = field(default=type(None), init=False, repr=False)
    message_template: str = field(default="", compare=False)
    root_bean: Any = field(default=None, compare=False, repr=False)
    leaf_bean: Any = field(default=None, compare=False, repr=False)
    root_type: type | None = field(default=None, compare=False, repr=False)
    executable_parameters: tuple[Any, ...] | None = field(default=None, compare=False, repr=False)
    executable_return_value: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "invalid_value_type", type(self.invalid_value))

    @property
    def rule_name(self) -> str | None:
        return self.rule.name if self.rule is not None else None


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


class ViolationBuilder(Protocol):
    """Creates the record for one reported failure.

    A validation run is given one builder at construction; the builder decides
    which of the optional :class:`Violation` fields are filled in.
    """

    def __call__(
        self,
        *,
        message: str,
        message_template: str,
        path: Path,
        rule: RuleMetadata | None,
        invalid_value: Any,
        group: Hashable,
        root_bean: Any,
        root_type: type | None,
        leaf_bean: Any,
    ) -> Violation: ...


def build_bean_violation(
    *,
    message: str,
    message_template: str,
    path: Path,
    rule: RuleMetadata | None,
    invalid_value: Any,
    group: Hashable,
    root_bean: Any,
    root_type: type | None,
    leaf_bean: Any,
) -> Violation:
    """Violation for a whole-graph validation, carrying the root bean."""
    return Violation(
        message=message,
        path=path,
        rule=rule,
        invalid_value=invalid_value,
        group=group,
        message_template=message_template,
        root_bean=root_bean,
        leaf_bean=leaf_bean,
        root_type=root_type,
    )


def build_value_violation(
    *,
    message: str,
    message_template: str,
    path: Path,
    rule: RuleMetadata | None,
    invalid_value: Any,
    group: Hashable,
    root_bean: Any,  # noqa: ARG001
    root_type: type | None,
    leaf_bean: Any,  # noqa: ARG001
) -> Violation:
    """Violation for a standalone value check; there is no bean instance."""
    return Violation(
        message=message,
        path=path,
        rule=rule,
        invalid_value=invalid_value,
        group=group,
        message_template=message_template,
        root_type=root_type,
    )


def parameter_violation_builder(arguments: tuple[Any, ...]) -> ViolationBuilder:
    """Return a builder that attaches the call *arguments* to every violation."""

    def build(**kwargs: Any) -> Violation:
        return Violation(**kwargs, executable_parameters=tuple(arguments))

    return build


def return_value_violation_builder(return_value: Any) -> ViolationBuilder:
    """Return a builder that attaches the call's *return_value* to every violation."""

    def build(**kwargs: Any) -> Violation:
        return Violation(**kwargs, executable_return_value=return_value)

    return build


# ---------------------------------------------------------------------------
# Collector
# ---------------------------------------------------------------------------


class ViolationCollector:
    """Renders, snapshots and deduplicates reported failures for one run."""

    def __init__(
        self,
        renderer: MessageRenderer,
        *,
        builder: ViolationBuilder = build_bean_violation,
        root_bean: Any = None,
        root_type: type | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._renderer = renderer
        self._builder = builder
        self._root_bean = root_bean
        self._root_type = root_type
        self._violations: set[Violation] = set()
        self._logger = logger if logger is not None else _module_logger

    def report(
        self,
        group: Hashable,
        message_template: str,
        value: Any,
        path: Path | PathBuilder,
        rule: RuleMetadata | None,
        message_parameters: Mapping[str, Any] | None = None,
        expression_variables: Mapping[str, Any] | None = None,
        *,
        leaf_bean: Any = None,
    ) -> Violation:
        """Record a failure and return the stored record.

        The path is copied here, before returning, because the walker keeps
        mutating its live builder.
        """
        message = self._renderer.render(
            message_template, value, rule, message_parameters, expression_variables
        )
        snapshot = as_path(path)
        violation = self._builder(
            message=message,
            message_template=message_template,
            path=snapshot,
            rule=rule,
            invalid_value=value,
            group=group,
            root_bean=self._root_bean,
            root_type=self._root_type,
            leaf_bean=leaf_bean,
        )
        if violation in self._violations:
            self._logger.debug("Duplicate violation at %s dropped", snapshot)
        self._violations.add(violation)
        return violation

    def results(self) -> frozenset[Violation]:
        return frozenset(self._violations)

    def __len__(self) -> int:
        return len(self._violations)

    def __bool__(self) -> bool:
        return bool(self._violations)
