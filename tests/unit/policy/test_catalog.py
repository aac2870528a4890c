"""Tests for policy catalog defaults and YAML loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from forkguard.policy.catalog import (
    DEFAULT_CATALOG,
    CatalogError,
    PolicyCatalog,
    load_catalog,
    normalize_banned_path,
)


def test_default_catalog_contents() -> None:
    assert "extensions/nostr" in DEFAULT_CATALOG.banned_paths
    assert len(DEFAULT_CATALOG.banned_paths) == 9
    assert "nostr-tools" in DEFAULT_CATALOG.risky_packages
    assert "esbuild" in DEFAULT_CATALOG.expected_built_dependencies
    assert "nostr-tools" not in DEFAULT_CATALOG.expected_built_dependencies


def test_catalog_is_immutable() -> None:
    with pytest.raises(AttributeError):
        DEFAULT_CATALOG.banned_paths = ()  # type: ignore[misc]


def test_load_catalog_without_path_returns_default() -> None:
    assert load_catalog(None) is DEFAULT_CATALOG


def test_load_catalog_overlays_given_keys(tmp_path: Path) -> None:
    policy = tmp_path / "policy.yaml"
    policy.write_text(
        "banned_paths:\n  - ./plugins/legacy/\n  - plugins/legacy\nrisky_packages:\n  - left-pad\n",
        encoding="utf-8",
    )
    catalog = load_catalog(policy)
    assert catalog.banned_paths == ("plugins/legacy",)
    assert catalog.risky_packages == ("left-pad",)
    assert catalog.expected_built_dependencies == DEFAULT_CATALOG.expected_built_dependencies
    assert isinstance(catalog, PolicyCatalog)


def test_empty_policy_file_is_default(tmp_path: Path) -> None:
    policy = tmp_path / "policy.yaml"
    policy.write_text("", encoding="utf-8")
    assert load_catalog(policy) is DEFAULT_CATALOG


@pytest.mark.parametrize(
    ("body", "match"),
    [
        ("- just\n- a list\n", "expected mapping"),
        ("banned_paths: extensions/x\n", "list of strings"),
        ("unknown_key: []\n", "unknown policy keys"),
        ("banned_paths: [\n", "parse error"),
        ("banned_paths:\n  - ../outside\n", "must not contain"),
    ],
)
def test_load_catalog_rejects_malformed_files(tmp_path: Path, body: str, match: str) -> None:
    policy = tmp_path / "policy.yaml"
    policy.write_text(body, encoding="utf-8")
    with pytest.raises(CatalogError, match=match):
        load_catalog(policy)


def test_load_catalog_missing_file(tmp_path: Path) -> None:
    with pytest.raises(CatalogError, match="not found"):
        load_catalog(tmp_path / "nope.yaml")


@pytest.mark.parametrize("value", ["/etc", "", ".", "   "])
def test_normalize_banned_path_rejects_root_escapes(value: str) -> None:
    with pytest.raises(CatalogError):
        normalize_banned_path(value)


def test_normalize_banned_path_normalizes_separators() -> None:
    assert normalize_banned_path("extensions\\matrix\\") == "extensions/matrix"
