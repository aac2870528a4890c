"""Policy catalog: banned paths, risky packages and the expected build allowlist."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

DEFAULT_BANNED_PATHS: tuple[str, ...] = (
    "extensions/nostr",
    "extensions/matrix",
    "extensions/memory-lancedb",
    "extensions/diagnostics-otel",
    "extensions/msteams",
    "extensions/twitch",
    "extensions/tlon",
    "extensions/voice-call",
    "extensions/phone-control",
)

DEFAULT_RISKY_PACKAGES: tuple[str, ...] = (
    "@lancedb/lancedb",
    "@matrix-org/matrix-sdk-crypto-nodejs",
    "authenticate-pam",
    "nostr-tools",
    "@nicolo-ribaudo/chokidar-2",
)

DEFAULT_EXPECTED_BUILT_DEPENDENCIES: tuple[str, ...] = (
    "@lydell/node-pty",
    "@matrix-org/matrix-sdk-crypto-nodejs",
    "@napi-rs/canvas",
    "@whiskeysockets/baileys",
    "authenticate-pam",
    "esbuild",
    "node-llama-cpp",
    "protobufjs",
    "sharp",
)


class CatalogError(RuntimeError):
    """Raised when a policy catalog file cannot be loaded."""


@dataclass(frozen=True)
class PolicyCatalog:
    """Immutable policy configuration threaded into scanner and scrub engine."""

    banned_paths: tuple[str, ...] = DEFAULT_BANNED_PATHS
    risky_packages: tuple[str, ...] = DEFAULT_RISKY_PACKAGES
    expected_built_dependencies: tuple[str, ...] = DEFAULT_EXPECTED_BUILT_DEPENDENCIES
    extension_root: str = "extensions"
    source_suffixes: tuple[str, ...] = (".ts", ".js")
    manifest_name: str = "package.json"
    vendor_dirs: tuple[str, ...] = ("node_modules",)


DEFAULT_CATALOG = PolicyCatalog()


def normalize_banned_path(value: str) -> str:
    """Normalize a banned path to repository-relative POSIX form."""
    raw = value.strip().replace("\\", "/").strip("/")
    if not raw:
        raise CatalogError("banned path must be non-empty")
    if value.strip().startswith("/"):
        raise CatalogError(f"banned path must be relative: {value}")
    parts = PurePosixPath(raw).parts
    if ".." in parts:
        raise CatalogError(f"banned path must not contain '..': {value}")
    if not parts:
        raise CatalogError(f"banned path must name a directory below the root: {value}")
    return str(PurePosixPath(*parts))


def _string_list(raw: Any, key: str) -> tuple[str, ...]:
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise CatalogError(f"`{key}` must be a list of strings")
    values: list[str] = []
    for item in raw:
        item = item.strip()
        if item and item not in values:
            values.append(item)
    return tuple(values)


def catalog_from_dict(data: dict[str, Any], base: PolicyCatalog = DEFAULT_CATALOG) -> PolicyCatalog:
    """Overlay a parsed mapping onto a base catalog."""
    overrides: dict[str, tuple[str, ...]] = {}
    if "banned_paths" in data:
        paths = _string_list(data["banned_paths"], "banned_paths")
        overrides["banned_paths"] = tuple(dict.fromkeys(normalize_banned_path(p) for p in paths))
    if "risky_packages" in data:
        overrides["risky_packages"] = _string_list(data["risky_packages"], "risky_packages")
    if "expected_built_dependencies" in data:
        overrides["expected_built_dependencies"] = _string_list(
            data["expected_built_dependencies"], "expected_built_dependencies"
        )
    unknown = sorted(set(data) - {"banned_paths", "risky_packages", "expected_built_dependencies"})
    if unknown:
        raise CatalogError(f"unknown policy keys: {', '.join(unknown)}")
    return replace(base, **overrides)


def load_catalog(path: Path | None) -> PolicyCatalog:
    """Load a YAML policy catalog, or return the compiled-in default."""
    if path is None:
        return DEFAULT_CATALOG
    if not path.exists():
        raise CatalogError(f"policy file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise CatalogError(f"policy file parse error: {exc}") from exc
    if raw is None:
        return DEFAULT_CATALOG
    if not isinstance(raw, dict):
        raise CatalogError("policy file parse error: expected mapping at top level")
    return catalog_from_dict(raw)
