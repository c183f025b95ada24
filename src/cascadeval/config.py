"""Validator settings loaded from the ``validator`` section of a YAML file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

import yaml

from cascadeval.errors import ConfigError
from cascadeval.metadata import DEFAULT_GROUP

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatorSettings:
    """Run-wide switches for :class:`~cascadeval.walker.GraphValidator`."""

    fail_fast: bool = False
    # Off only for traversal modes that must re-validate every occurrence.
    track_validated_beans: bool = True
    default_groups: tuple[str, ...] = (DEFAULT_GROUP,)
    type_key: str = "kind"


def _as_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        msg = f"validator.{key} must be true or false, got {value!r}"
        raise ConfigError(msg)
    return value


def settings_from_mapping(data: object) -> ValidatorSettings:
    """Build settings from a parsed config document, defaulting missing keys."""
    defaults = ValidatorSettings()
    if not isinstance(data, dict):
        return defaults

    section = data.get("validator")
    if section is None:
        return defaults
    if not isinstance(section, dict):
        msg = "'validator' section must be a mapping"
        raise ConfigError(msg)

    groups_raw = section.get("default_groups", list(defaults.default_groups))
    if isinstance(groups_raw, str):
        groups_raw = [groups_raw]
    if not isinstance(groups_raw, list) or not groups_raw:
        msg = "validator.default_groups must be a non-empty list"
        raise ConfigError(msg)

    type_key = section.get("type_key", defaults.type_key)
    if not isinstance(type_key, str) or not type_key:
        msg = "validator.type_key must be a non-empty string"
        raise ConfigError(msg)

    return replace(
        defaults,
        fail_fast=_as_bool(section, "fail_fast", defaults.fail_fast),
        track_validated_beans=_as_bool(
            section, "track_validated_beans", defaults.track_validated_beans
        ),
        default_groups=tuple(str(g) for g in groups_raw),
        type_key=type_key,
    )


def load_settings(config_path: Path) -> ValidatorSettings:
    """Load settings from *config_path*.

    Falls back to defaults for a missing or unreadable file.  Values of the
    wrong type raise :class:`ConfigError`.
    """
    if not config_path.is_file():
        return ValidatorSettings()

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default settings", config_path)
        return ValidatorSettings()

    return settings_from_mapping(data)
