"""Shared test fixtures for cascadeval."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from cascadeval.metadata import RuleMetadata

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


@pytest.fixture()
def make_rule() -> Callable[..., RuleMetadata]:
    """Build a RuleMetadata with sensible defaults."""

    def _make(
        name: str = "rule",
        *,
        bean_type: str = "*",
        check: str = "required",
        property_name: str | None = None,
        groups: tuple[str, ...] = ("default",),
        message: str | None = None,
        **attributes: Any,
    ) -> RuleMetadata:
        return RuleMetadata(
            name=name,
            bean_type=bean_type,
            check=check,
            property_name=property_name,
            groups=frozenset(groups),
            attributes=attributes,
            message=message,
        )

    return _make


@pytest.fixture()
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write *content* to ``tmp_path / name`` and return the path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
