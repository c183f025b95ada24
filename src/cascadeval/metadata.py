"""Rule metadata: parse rules.yml and answer which rules apply to a bean."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from collections.abc import Hashable
    from pathlib import Path

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})
DEFAULT_GROUP = "default"
ANY_TYPE = "*"
MAPPING_TYPE = "mapping"
SEQUENCE_TYPE = "sequence"

# Attributes each built-in check accepts; anything else is a schema error.
CHECK_ATTRIBUTES: dict[str, frozenset[str]] = {
    "required": frozenset(),
    "not_blank": frozenset(),
    "length": frozenset({"min", "max"}),
    "range": frozenset({"min", "max"}),
    "pattern": frozenset({"regexp"}),
    "one_of": frozenset({"choices"}),
    "type": frozenset({"expected"}),
}
VALID_TYPE_NAMES: frozenset[str] = frozenset(
    {"str", "int", "float", "number", "bool", "list", "mapping"}
)

_RESERVED_KEYS: frozenset[str] = frozenset(
    {"name", "description", "bean", "property", "check", "groups", "message"}
)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class RuleMetadata:
    """One rule instance bound to a bean type and, optionally, a property.

    Rules compare by identity: two rules with identical settings are still
    distinct instances for deduplication and violation records.
    """

    name: str
    bean_type: str
    check: str
    property_name: str | None = None
    groups: frozenset[Hashable] = frozenset({DEFAULT_GROUP})
    attributes: Mapping[str, Any] = field(default_factory=dict)
    message: str | None = None
    description: str = ""

    @property
    def defined_for_one_group_only(self) -> bool:
        return len(self.groups) == 1

    def applies_to(self, type_name: str) -> bool:
        return self.bean_type in (ANY_TYPE, type_name)

    def __repr__(self) -> str:
        target = self.bean_type
        if self.property_name is not None:
            target += f".{self.property_name}"
        return f"RuleMetadata({self.name!r}, {self.check} on {target})"


def bean_type_name(bean: object, type_key: str = "kind") -> str:
    """Return the type name rules are matched against for *bean*.

    Mappings are typed by their *type_key* entry when it holds a string,
    otherwise they are plain ``mapping``.  Lists and tuples are ``sequence``.
    Any other object is typed by its class name.
    """
    if isinstance(bean, Mapping):
        declared = bean.get(type_key)
        return declared if isinstance(declared, str) else MAPPING_TYPE
    if isinstance(bean, (list, tuple)):
        return SEQUENCE_TYPE
    return type(bean).__name__


class RuleSet:
    """Read-only metadata provider over a list of parsed rules."""

    def __init__(self, rules: Sequence[RuleMetadata], *, type_key: str = "kind") -> None:
        self._rules = tuple(rules)
        self.type_key = type_key

    @property
    def rules(self) -> tuple[RuleMetadata, ...]:
        return self._rules

    @property
    def groups(self) -> frozenset[Hashable]:
        """All groups mentioned by any rule."""
        result: set[Hashable] = set()
        for rule in self._rules:
            result.update(rule.groups)
        return frozenset(result)

    def type_of(self, bean: object) -> str:
        return bean_type_name(bean, self.type_key)

    def rules_for(self, bean: object) -> list[RuleMetadata]:
        """Rules whose ``bean`` selector matches *bean*."""
        return self.rules_for_type(self.type_of(bean))

    def rules_for_type(self, type_name: str) -> list[RuleMetadata]:
        return [r for r in self._rules if r.applies_to(type_name)]

    def property_rules(self, type_name: str, property_name: str) -> list[RuleMetadata]:
        return [r for r in self.rules_for_type(type_name) if r.property_name == property_name]

    def __len__(self) -> int:
        return len(self._rules)


# ---------------------------------------------------------------------------
# YAML parsing
# ---------------------------------------------------------------------------


def _parse_groups(name: str, raw: object) -> frozenset[Hashable]:
    if raw is None:
        return frozenset({DEFAULT_GROUP})
    if isinstance(raw, str):
        return frozenset({raw})
    if not isinstance(raw, list) or not raw:
        msg = f"Rule '{name}': 'groups' must be a non-empty list or a string"
        raise ValueError(msg)
    return frozenset(str(g) for g in raw)


def _parse_attributes(name: str, check: str, rule_data: dict[str, Any]) -> dict[str, Any]:
    """Collect and validate the check-specific keys of a rule."""
    allowed = CHECK_ATTRIBUTES[check]
    attributes: dict[str, Any] = {}
    for key, value in rule_data.items():
        if key in _RESERVED_KEYS:
            continue
        if key not in allowed:
            msg = f"Rule '{name}': unknown attribute '{key}' for check '{check}'"
            raise ValueError(msg)
        attributes[key] = value

    if check in ("length", "range"):
        if "min" not in attributes and "max" not in attributes:
            msg = f"Rule '{name}': check '{check}' needs at least one of 'min' or 'max'"
            raise ValueError(msg)
        for bound in ("min", "max"):
            value = attributes.get(bound)
            is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
            if value is not None and not is_number:
                msg = f"Rule '{name}': '{bound}' must be a number"
                raise ValueError(msg)
        low, high = attributes.get("min"), attributes.get("max")
        if check == "length":
            if low is None:
                low = attributes["min"] = 0
            attributes.setdefault("max", None)
            if low < 0 or (high is not None and high < low):
                msg = f"Rule '{name}': invalid length bounds {low}..{high}"
                raise ValueError(msg)
        elif low is not None and high is not None and high < low:
            msg = f"Rule '{name}': invalid range bounds {low}..{high}"
            raise ValueError(msg)
    elif check == "pattern":
        regexp = attributes.get("regexp")
        if not isinstance(regexp, str):
            msg = f"Rule '{name}': check 'pattern' needs a string 'regexp'"
            raise ValueError(msg)
        try:
            re.compile(regexp)
        except re.error as exc:
            msg = f"Rule '{name}': invalid regexp {regexp!r}: {exc}"
            raise ValueError(msg) from exc
    elif check == "one_of":
        choices = attributes.get("choices")
        if not isinstance(choices, list) or not choices:
            msg = f"Rule '{name}': check 'one_of' needs a non-empty 'choices' list"
            raise ValueError(msg)
    elif check == "type":
        expected = attributes.get("expected")
        if expected not in VALID_TYPE_NAMES:
            msg = (
                f"Rule '{name}': invalid expected type {expected!r}, "
                f"must be one of {sorted(VALID_TYPE_NAMES)}"
            )
            raise ValueError(msg)

    return attributes


def parse_rules(data: object, *, known_checks: frozenset[str] | None = None) -> list[RuleMetadata]:
    """Validate an already-loaded rules document and return its rules.

    Raises ``ValueError`` on schema errors.
    """
    checks = known_checks if known_checks is not None else frozenset(CHECK_ATTRIBUTES)

    if not isinstance(data, dict):
        msg = "rules.yml must be a YAML mapping"
        raise ValueError(msg)

    version = data.get("version")
    if version is None:
        msg = "rules.yml: missing required 'version' field"
        raise ValueError(msg)
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        expected = sorted(SUPPORTED_SCHEMA_VERSIONS)
        msg = f"rules.yml: unsupported version {version}, expected one of {expected}"
        raise ValueError(msg)

    rules_data = data.get("rules", [])
    if not isinstance(rules_data, list):
        msg = "rules.yml: 'rules' must be a list"
        raise ValueError(msg)

    seen_names: set[str] = set()
    rules: list[RuleMetadata] = []

    for idx, rule_data in enumerate(rules_data):
        if not isinstance(rule_data, dict):
            msg = f"rules.yml: rule at index {idx} must be a mapping"
            raise ValueError(msg)

        name = rule_data.get("name")
        if name is None or not isinstance(name, str) or not name.strip():
            msg = f"rules.yml: rule at index {idx} missing required 'name' field"
            raise ValueError(msg)
        if name in seen_names:
            msg = f"rules.yml: Duplicate rule name '{name}'"
            raise ValueError(msg)
        seen_names.add(name)

        bean_type = rule_data.get("bean")
        if not isinstance(bean_type, str) or not bean_type:
            msg = f"Rule '{name}': 'bean' must name a bean type or '*'"
            raise ValueError(msg)

        check = rule_data.get("check")
        if check not in checks:
            msg = f"Rule '{name}': unknown check {check!r}, must be one of {sorted(checks)}"
            raise ValueError(msg)

        prop = rule_data.get("property")
        if prop is not None and not isinstance(prop, str):
            msg = f"Rule '{name}': 'property' must be a string"
            raise ValueError(msg)

        message = rule_data.get("message")
        if message is not None and not isinstance(message, str):
            msg = f"Rule '{name}': 'message' must be a string"
            raise ValueError(msg)

        if check in CHECK_ATTRIBUTES:
            attributes = _parse_attributes(name, check, rule_data)
        else:
            attributes = {k: v for k, v in rule_data.items() if k not in _RESERVED_KEYS}

        rules.append(
            RuleMetadata(
                name=name,
                bean_type=bean_type,
                check=check,
                property_name=prop,
                groups=_parse_groups(name, rule_data.get("groups")),
                attributes=attributes,
                message=message,
                description=str(rule_data.get("description", "")),
            )
        )

    return rules


def load_rules(
    rules_path: Path, *, type_key: str = "kind", known_checks: frozenset[str] | None = None
) -> RuleSet:
    """Parse rules.yml into a :class:`RuleSet`.

    Raises ``ValueError`` on schema errors (missing version, unknown check, etc.).
    """
    with rules_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return RuleSet(parse_rules(data, known_checks=known_checks), type_key=type_key)
