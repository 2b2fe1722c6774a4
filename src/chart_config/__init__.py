"""
chart-config: cascading validity for multi-step chart configuration.

Main API:
- evaluate(): Derive step statuses and smart-assist issues for a snapshot
- ConfigurationStore: Session state with named, atomic mutations
- apply_action(): Apply a remediation action to a snapshot
"""

# Define version first to avoid circular imports
__version__ = "0.3.0"

from .api import evaluate, ConfigReport
from .assist import (
    Issue,
    IssueAction,
    detect_issues,
    REMOVE_REFERENCE_FROM_QUERY,
    RESTORE_FILTER,
)
from .catalog import FilterDefinition, FilterCatalog, DEFAULT_FILTER_CATALOG, load_filter_catalog
from .references import extract_filter_references, extract_column_references
from .remediation import apply_action
from .state import (
    ConfigSnapshot,
    FiltersPayload,
    QueryPayload,
    PreviewPayload,
    MappingPayload,
    MonotonicClock,
    initial_snapshot,
)
from .steps import (
    FILTERS,
    QUERY,
    PREVIEW,
    MAPPING,
    VALID,
    NEEDS_UPDATE,
    OUTDATED,
    ValidityResult,
    upstream_of,
    downstream_of,
)
from .store import ConfigurationStore, ChangeRecord
from .validity import compute_status, compute_all_statuses
from .io import load_snapshot, write_snapshot

__all__ = [
    "__version__",
    # Main API functions
    "evaluate",
    "compute_status",
    "compute_all_statuses",
    "detect_issues",
    "apply_action",
    "extract_filter_references",
    "extract_column_references",
    "upstream_of",
    "downstream_of",
    # Result types
    "ConfigReport",
    "ValidityResult",
    "Issue",
    "IssueAction",
    # State
    "ConfigurationStore",
    "ChangeRecord",
    "ConfigSnapshot",
    "FiltersPayload",
    "QueryPayload",
    "PreviewPayload",
    "MappingPayload",
    "MonotonicClock",
    "initial_snapshot",
    # Catalog
    "FilterDefinition",
    "FilterCatalog",
    "DEFAULT_FILTER_CATALOG",
    "load_filter_catalog",
    # Persistence
    "load_snapshot",
    "write_snapshot",
    # Constants
    "FILTERS",
    "QUERY",
    "PREVIEW",
    "MAPPING",
    "VALID",
    "NEEDS_UPDATE",
    "OUTDATED",
    "REMOVE_REFERENCE_FROM_QUERY",
    "RESTORE_FILTER",
]
