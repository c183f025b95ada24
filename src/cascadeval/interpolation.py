"""Message interpolation: the interpolator protocol, a default implementation,
and the adapter the validation run renders messages through.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from cascadeval.errors import MessageInterpolationError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cascadeval.metadata import RuleMetadata

_module_logger = logging.getLogger(__name__)

VALIDATED_VALUE_VARIABLE = "validatedValue"
_ESCAPABLE = frozenset("{}$\\")


@dataclass(frozen=True)
class InterpolationContext:
    """Everything an interpolator may consult while rendering one message."""

    rule: RuleMetadata | None
    validated_value: Any
    root_type: type | None
    message_parameters: Mapping[str, Any] = field(default_factory=dict)
    expression_variables: Mapping[str, Any] = field(default_factory=dict)


class MessageInterpolator(Protocol):
    """Turns a message template into the final violation message."""

    def interpolate(self, template: str, context: InterpolationContext) -> str: ...


# ---------------------------------------------------------------------------
# Default interpolator
# ---------------------------------------------------------------------------


class TemplateInterpolator:
    """Resolves ``{name}`` and ``${name}`` placeholders.

    ``{name}`` is looked up in the message parameters, then in the rule's
    attributes.  ``${name}`` is looked up in the expression variables, where
    ``validatedValue`` is always available.  Unknown names are left in place.
    ``\\{``, ``\\}``, ``\\$`` and ``\\\\`` produce the literal character.

    Raises :class:`ValidationError` for an unterminated or empty placeholder.
    """

    def interpolate(self, template: str, context: InterpolationContext) -> str:
        out: list[str] = []
        i = 0
        length = len(template)
        while i < length:
            char = template[i]
            if char == "\\" and i + 1 < length and template[i + 1] in _ESCAPABLE:
                out.append(template[i + 1])
                i += 2
                continue
            if char == "$" and i + 1 < length and template[i + 1] == "{":
                name, i = self._read_placeholder(template, i + 1)
                out.append(self._resolve_expression(name, context))
                continue
            if char == "{":
                name, i = self._read_placeholder(template, i)
                out.append(self._resolve_parameter(name, context))
                continue
            if char == "}":
                msg = f"Misplaced '}}' at position {i} in message template {template!r}"
                raise ValidationError(msg)
            out.append(char)
            i += 1
        return "".join(out)

    @staticmethod
    def _read_placeholder(template: str, start: int) -> tuple[str, int]:
        """Read the name of the placeholder opening at *start*; return it and the next index."""
        end = template.find("}", start + 1)
        if end == -1:
            msg = f"Unterminated placeholder at position {start} in message template {template!r}"
            raise ValidationError(msg)
        name = template[start + 1 : end].strip()
        if not name or "{" in name:
            msg = f"Malformed placeholder at position {start} in message template {template!r}"
            raise ValidationError(msg)
        return name, end + 1

    @staticmethod
    def _resolve_parameter(name: str, context: InterpolationContext) -> str:
        if name in context.message_parameters:
            return _format(context.message_parameters[name])
        if context.rule is not None and name in context.rule.attributes:
            return _format(context.rule.attributes[name])
        return "{" + name + "}"

    @staticmethod
    def _resolve_expression(name: str, context: InterpolationContext) -> str:
        if name in context.expression_variables:
            return _format(context.expression_variables[name])
        if name == VALIDATED_VALUE_VARIABLE:
            return _format(context.validated_value)
        return "${" + name + "}"


def _format(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class MessageRenderer:
    """Wraps a :class:`MessageInterpolator` and normalises its failures.

    Validation-domain errors pass through unchanged; anything else becomes a
    :class:`MessageInterpolationError` chained to the original exception.
    """

    def __init__(
        self,
        interpolator: MessageInterpolator,
        root_type: type | None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._interpolator = interpolator
        self._root_type = root_type
        self._logger = logger if logger is not None else _module_logger

    def render(
        self,
        template: str,
        value: Any,
        rule: RuleMetadata | None,
        parameters: Mapping[str, Any] | None = None,
        expression_variables: Mapping[str, Any] | None = None,
    ) -> str:
        context = InterpolationContext(
            rule=rule,
            validated_value=value,
            root_type=self._root_type,
            message_parameters=dict(parameters or {}),
            expression_variables=dict(expression_variables or {}),
        )
        try:
            return self._interpolator.interpolate(template, context)
        except ValidationError:
            raise
        except Exception as exc:
            self._logger.debug("Interpolator failed on %r: %s", template, exc)
            raise MessageInterpolationError(template, exc) from exc
