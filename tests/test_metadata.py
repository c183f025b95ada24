"""Tests for cascadeval.metadata — rules.yml parsing and rule lookup."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cascadeval.metadata import (
    RuleMetadata,
    RuleSet,
    bean_type_name,
    load_rules,
    parse_rules,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


RULES_YML = (
    "version: 1\n"
    "rules:\n"
    "  - name: port-range\n"
    "    description: Ports are 16-bit\n"
    "    bean: server\n"
    "    property: port\n"
    "    check: range\n"
    "    min: 1\n"
    "    max: 65535\n"
    "    groups: [default, strict]\n"
    "  - name: name-required\n"
    "    bean: '*'\n"
    "    property: name\n"
    "    check: required\n"
    "    message: name is mandatory\n"
)


class TestLoadRules:
    def test_parses_rules(self, write_file: Callable[[str, str], Path]) -> None:
        rule_set = load_rules(write_file("rules.yml", RULES_YML))
        assert len(rule_set) == 2
        port, name = rule_set.rules
        assert port.name == "port-range"
        assert port.description == "Ports are 16-bit"
        assert port.bean_type == "server"
        assert port.property_name == "port"
        assert port.check == "range"
        assert port.attributes == {"min": 1, "max": 65535}
        assert port.groups == frozenset({"default", "strict"})
        assert not port.defined_for_one_group_only
        assert name.groups == frozenset({"default"})
        assert name.defined_for_one_group_only
        assert name.message == "name is mandatory"

    def test_type_key_passed_through(self, write_file: Callable[[str, str], Path]) -> None:
        rule_set = load_rules(write_file("rules.yml", RULES_YML), type_key="type")
        assert rule_set.type_key == "type"

    def test_group_as_string(self) -> None:
        (rule,) = parse_rules(
            {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "required",
                                      "groups": "strict"}]}
        )
        assert rule.groups == frozenset({"strict"})

    def test_length_defaults(self) -> None:
        (rule,) = parse_rules(
            {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "length", "max": 3}]}
        )
        assert rule.attributes == {"min": 0, "max": 3}

    def test_empty_rules(self) -> None:
        assert parse_rules({"version": 1}) == []


class TestLoadRulesValidationErrors:
    @pytest.mark.parametrize(
        ("data", "match"),
        [
            ([], "mapping"),
            ({"rules": []}, "version"),
            ({"version": 99, "rules": []}, "version"),
            ({"version": 1, "rules": {}}, "list"),
            ({"version": 1, "rules": ["x"]}, "index 0"),
            ({"version": 1, "rules": [{"bean": "*", "check": "required"}]}, "name"),
            ({"version": 1, "rules": [{"name": "r", "check": "required"}]}, "bean"),
            ({"version": 1, "rules": [{"name": "r", "bean": "*", "check": "nope"}]}, "check"),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "range"}]},
                "min",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "range",
                                          "min": "low"}]},
                "number",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "length",
                                          "min": 5, "max": 2}]},
                r"Rule 'r': invalid length bounds 5\.\.2",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "length",
                                          "min": -1}]},
                "invalid length bounds",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "range",
                                          "min": 10, "max": 1}]},
                "invalid range bounds",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "pattern",
                                          "regexp": "("}]},
                "regexp",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "one_of"}]},
                "choices",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "type",
                                          "expected": "complex"}]},
                "expected type",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "required",
                                          "min": 1}]},
                "unknown attribute",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "required",
                                          "groups": []}]},
                "groups",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "required",
                                          "property": 3}]},
                "property",
            ),
            (
                {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "required",
                                          "message": 3}]},
                "message",
            ),
        ],
    )
    def test_invalid(self, data: object, match: str) -> None:
        with pytest.raises(ValueError, match=match):
            parse_rules(data)

    def test_duplicate_rule_names(self) -> None:
        rule = {"name": "dup", "bean": "*", "check": "required"}
        with pytest.raises(ValueError, match="Duplicate"):
            parse_rules({"version": 1, "rules": [rule, dict(rule)]})

    def test_custom_check_names(self) -> None:
        (rule,) = parse_rules(
            {"version": 1, "rules": [{"name": "r", "bean": "*", "check": "even", "strict": True}]},
            known_checks=frozenset({"even"}),
        )
        assert rule.check == "even"
        assert rule.attributes == {"strict": True}


class TestRuleMetadata:
    def test_identity_equality(self, make_rule: Callable[..., RuleMetadata]) -> None:
        assert make_rule() != make_rule()
        rule = make_rule()
        assert rule == rule

    def test_frozen(self, make_rule: Callable[..., RuleMetadata]) -> None:
        rule = make_rule()
        with pytest.raises(AttributeError):
            rule.name = "changed"  # type: ignore[misc]

    def test_repr(self, make_rule: Callable[..., RuleMetadata]) -> None:
        rule = make_rule("r", bean_type="server", property_name="port")
        assert repr(rule) == "RuleMetadata('r', required on server.port)"


class TestBeanTypeName:
    def test_mapping_with_type_key(self) -> None:
        assert bean_type_name({"kind": "server"}) == "server"

    def test_mapping_without_type_key(self) -> None:
        assert bean_type_name({"name": "x"}) == "mapping"
        assert bean_type_name({"kind": 3}) == "mapping"

    def test_custom_type_key(self) -> None:
        assert bean_type_name({"type": "db"}, "type") == "db"

    def test_sequence(self) -> None:
        assert bean_type_name([1, 2]) == "sequence"
        assert bean_type_name((1,)) == "sequence"

    def test_object(self) -> None:
        class Server:
            pass

        assert bean_type_name(Server()) == "Server"


class TestRuleSet:
    def test_rules_for(self, make_rule: Callable[..., RuleMetadata]) -> None:
        anywhere = make_rule("any", bean_type="*")
        server = make_rule("server", bean_type="server")
        db = make_rule("db", bean_type="db")
        rule_set = RuleSet([anywhere, server, db])
        assert rule_set.rules_for({"kind": "server"}) == [anywhere, server]
        assert rule_set.rules_for({}) == [anywhere]

    def test_property_rules(self, make_rule: Callable[..., RuleMetadata]) -> None:
        port = make_rule("port", bean_type="server", property_name="port")
        host = make_rule("host", bean_type="server", property_name="host")
        rule_set = RuleSet([port, host])
        assert rule_set.property_rules("server", "port") == [port]

    def test_groups(self, make_rule: Callable[..., RuleMetadata]) -> None:
        rule_set = RuleSet([make_rule(groups=("a", "b")), make_rule(groups=("c",))])
        assert rule_set.groups == frozenset({"a", "b", "c"})
