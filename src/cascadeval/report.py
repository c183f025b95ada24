"""Formatters for validation results (text, JSON, porcelain) and rule listings."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rich.console import Console

    from cascadeval.metadata import RuleMetadata, RuleSet
    from cascadeval.violations import Violation


def sorted_violations(violations: Iterable[Violation]) -> list[Violation]:
    """Stable display order: by path, then rule name, then message."""
    return sorted(
        violations,
        key=lambda v: (str(v.path), v.rule_name or "", str(v.group), v.message),
    )


def _json_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    # Containers may be self-referencing; repr() copes with that, json does not.
    return repr(value)


def format_text(violations: Iterable[Violation], *, elapsed_ms: float | None = None) -> str:
    """Format violations as human-readable text.

    Example output::

        ✗ port-range [default]
          servers[0].port → must be between 1 and 65535

        1 violation found (0.4ms)
    """
    ordered = sorted_violations(violations)
    timing = f" ({elapsed_ms:.1f}ms)" if elapsed_ms is not None else ""

    if not ordered:
        return f"✓ No violations found{timing}"

    lines: list[str] = []
    for v in ordered:
        lines.append(f"✗ {v.rule_name or '<anonymous>'} [{v.group}]")
        location = str(v.path) or "<root>"
        lines.append(f"  {location} → {v.message}")
        lines.append("")

    count = len(ordered)
    noun = "violation" if count == 1 else "violations"
    lines.append(f"{count} {noun} found{timing}")
    return "\n".join(lines)


def format_json(violations: Iterable[Violation], *, elapsed_ms: float | None = None) -> str:
    """Format violations as a JSON document with ``violations`` and ``summary``."""
    ordered = sorted_violations(violations)
    output: dict[str, object] = {
        "violations": [
            {
                "rule_name": v.rule_name,
                "group": _json_value(v.group),
                "path": str(v.path),
                "message": v.message,
                "message_template": v.message_template,
                "invalid_value": _json_value(v.invalid_value),
            }
            for v in ordered
        ],
        "summary": {
            "violations_count": len(ordered),
            "elapsed_ms": elapsed_ms,
        },
    }
    return json.dumps(output, indent=2)


def format_porcelain(violations: Iterable[Violation]) -> str:
    """One ``rule:group:path:message`` line per violation; empty when clean."""
    return "\n".join(
        f"{v.rule_name or ''}:{v.group}:{v.path}:{v.message}" for v in sorted_violations(violations)
    )


# ---------------------------------------------------------------------------
# Rule listings
# ---------------------------------------------------------------------------


def _target(rule: RuleMetadata) -> str:
    if rule.property_name is None:
        return rule.bean_type
    return f"{rule.bean_type}.{rule.property_name}"


def rules_to_dict(rule_set: RuleSet) -> list[dict[str, object]]:
    """Serialise a rule set for ``cascadeval rules --json``."""
    return [
        {
            "name": rule.name,
            "check": rule.check,
            "bean": rule.bean_type,
            "property": rule.property_name,
            "groups": sorted(str(g) for g in rule.groups),
            "attributes": {k: _json_value(v) for k, v in rule.attributes.items()},
            "message": rule.message,
            "description": rule.description,
        }
        for rule in rule_set.rules
    ]


def render_rules(rule_set: RuleSet, console: Console) -> None:
    """Render a rule set as a Rich table."""
    if not len(rule_set):
        console.print("No rules defined.")
        return

    from rich.table import Table

    table = Table(title=f"Rules ({len(rule_set)})", box=None, padding=(0, 1))
    table.add_column("name", style="cyan", no_wrap=True)
    table.add_column("check")
    table.add_column("target", no_wrap=True)
    table.add_column("groups")
    for rule in rule_set.rules:
        table.add_row(
            rule.name,
            rule.check,
            _target(rule),
            ", ".join(sorted(str(g) for g in rule.groups)),
        )
    console.print(table)
