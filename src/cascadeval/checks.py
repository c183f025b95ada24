"""Built-in checks and the factory/manager that hand out initialised evaluators."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sized
from typing import TYPE_CHECKING, Any, ClassVar, Protocol

from cascadeval.tracking import IdentityKey

if TYPE_CHECKING:
    from cascadeval.context import RuleEvaluationContext
    from cascadeval.metadata import RuleMetadata

logger = logging.getLogger(__name__)


class Evaluator(Protocol):
    """Evaluates one rule against candidate values."""

    def initialize(self, rule: RuleMetadata) -> None: ...

    def message_template(self) -> str: ...

    def is_valid(self, value: Any, context: RuleEvaluationContext) -> bool: ...


# ---------------------------------------------------------------------------
# Built-in checks
# ---------------------------------------------------------------------------


class _BaseCheck:
    """Shared plumbing: keep the rule, expose a fixed default message."""

    default_message: ClassVar[str] = "is invalid"

    def __init__(self) -> None:
        self.rule: RuleMetadata | None = None

    def initialize(self, rule: RuleMetadata) -> None:
        self.rule = rule

    def message_template(self) -> str:
        return self.default_message

    def is_valid(self, value: Any, context: RuleEvaluationContext) -> bool:
        raise NotImplementedError


class RequiredCheck(_BaseCheck):
    default_message = "must not be null"

    def is_valid(self, value: Any, context: RuleEvaluationContext) -> bool:  # noqa: ARG002
        return value is not None


class NotBlankCheck(_BaseCheck):
    default_message = "must not be blank"

    def is_valid(self, value: Any, context: RuleEvaluationContext) -> bool:  # noqa: ARG002
        if value is None:
            return False
        return bool(str(value).strip())


class LengthCheck(_BaseCheck):
    """Size of strings, sequences and mappings.  ``None`` is valid."""

    def initialize(self, rule: RuleMetadata) -> None:
        super().initialize(rule)
        self.min: int = int(rule.attributes.get("min") or 0)
        max_raw = rule.attributes.get("max")
        self.max: int | None = int(max_raw) if max_raw is not None else None
        if self.min < 0 or (self.max is not None and self.max < self.min):
            msg = f"Rule '{rule.name}': invalid length bounds {self.min}..{self.max}"
            raise ValueError(msg)

    def message_template(self) -> str:
        if self.max is None:
            return "size must be at least {min}"
        return "size must be between {min} and {max}"

    def is_valid(self, value: Any, context: RuleEvaluationContext) -> bool:  # noqa: ARG002
        if value is None:
            return True
        if not isinstance(value, Sized):
            return False
        size = len(value)
        return size >= self.min and (self.max is None or size <= self.max)


class RangeCheck(_BaseCheck):
    """Numeric bounds, inclusive.  ``None`` is valid; booleans are not numbers."""

    def initialize(self, rule: RuleMetadata) -> None:
        super().initialize(rule)
        self.min: float | None = rule.attributes.get("min")
        self.max: float | None = rule.attributes.get("max")

    def message_template(self) -> str:
        if self.min is None:
            return "must be less than or equal to {max}"
        if self.max is None:
            return "must be greater than or equal to {min}"
        return "must be between {min} and {max}"

    def is_valid(self, value: Any, context: RuleEvaluationContext) -> bool:
        if value is None:
            return True
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            context.disable_default_violation()
            context.build_violation("must be a number")
            return False
        if self.min is not None and value < self.min:
            return False
        return not (self.max is not None and value > self.max)


class PatternCheck(_BaseCheck):
    default_message = 'must match "{regexp}"'

    def initialize(self, rule: RuleMetadata) -> None:
        super().initialize(rule)
        self.regex = re.compile(str(rule.attributes["regexp"]))

    def is_valid(self, value: Any, context: RuleEvaluationContext) -> bool:  # noqa: ARG002
        if value is None:
            return True
        return isinstance(value, str) and self.regex.fullmatch(value) is not None


class OneOfCheck(_BaseCheck):
    default_message = "must be one of {choices}"

    def initialize(self, rule: RuleMetadata) -> None:
        super().initialize(rule)
        self.choices: tuple[Any, ...] = tuple(rule.attributes["choices"])

    def is_valid(self, value: Any, context: RuleEvaluationContext) -> bool:
        if value is None:
            return True
        if value in self.choices:
            return True
        context.add_message_parameter("choices", ", ".join(str(c) for c in self.choices))
        return False


class TypeCheck(_BaseCheck):
    default_message = "must be of type {expected}, got ${actualType}"

    _TYPES: ClassVar[dict[str, tuple[type, ...]]] = {
        "str": (str,),
        "int": (int,),
        "float": (float,),
        "number": (int, float),
        "bool": (bool,),
        "list": (list, tuple),
        "mapping": (Mapping,),
    }

    def initialize(self, rule: RuleMetadata) -> None:
        super().initialize(rule)
        self.expected = str(rule.attributes["expected"])
        self.types = self._TYPES[self.expected]

    def is_valid(self, value: Any, context: RuleEvaluationContext) -> bool:
        if value is None:
            return True
        # bool is an int subclass; only "bool" accepts it
        valid = isinstance(value, self.types) and (
            self.expected == "bool" or not isinstance(value, bool)
        )
        if not valid:
            context.add_expression_variable("actualType", type(value).__name__)
        return valid


BUILTIN_CHECKS: dict[str, type[_BaseCheck]] = {
    "required": RequiredCheck,
    "not_blank": NotBlankCheck,
    "length": LengthCheck,
    "range": RangeCheck,
    "pattern": PatternCheck,
    "one_of": OneOfCheck,
    "type": TypeCheck,
}

# ---------------------------------------------------------------------------
# Factory and manager
# ---------------------------------------------------------------------------


class CheckFactory:
    """Creates evaluator instances by check name."""

    def __init__(self, checks: Mapping[str, type[Any]] | None = None) -> None:
        self._checks: dict[str, type[Any]] = dict(BUILTIN_CHECKS if checks is None else checks)

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self._checks)

    def register(self, name: str, check_class: type[Any]) -> None:
        self._checks[name] = check_class

    def create(self, check: str) -> Evaluator:
        try:
            check_class = self._checks[check]
        except KeyError:
            msg = f"No check registered under {check!r}"
            raise LookupError(msg) from None
        evaluator: Evaluator = check_class()
        return evaluator


class EvaluatorManager:
    """Caches one initialised evaluator per rule instance.

    Lives as long as the validator that owns it, so evaluators are shared
    across validation calls while the rule objects stay the same.
    """

    def __init__(self, factory: CheckFactory | None = None) -> None:
        self.factory = factory if factory is not None else CheckFactory()
        self._evaluators: dict[IdentityKey, Evaluator] = {}

    def get(self, rule: RuleMetadata) -> Evaluator:
        key = IdentityKey(rule)
        evaluator = self._evaluators.get(key)
        if evaluator is None:
            evaluator = self.factory.create(rule.check)
            evaluator.initialize(rule)
            self._evaluators[key] = evaluator
            logger.debug("Initialised %s evaluator for rule %r", rule.check, rule.name)
        return evaluator

    def clear(self) -> None:
        self._evaluators.clear()

    def __len__(self) -> int:
        return len(self._evaluators)
