"""Policy catalog and scanner."""

from forkguard.policy.catalog import DEFAULT_CATALOG, CatalogError, PolicyCatalog, load_catalog
from forkguard.policy.scanner import scan
from forkguard.policy.types import Finding, ScanReport

__all__ = [
    "DEFAULT_CATALOG",
    "CatalogError",
    "Finding",
    "PolicyCatalog",
    "ScanReport",
    "load_catalog",
    "scan",
]
