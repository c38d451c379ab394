"""
Core engine: canonical store, contexts, data sources, pipeline stages,
view managers and the notification primitives they share.
"""

from .browser_data_source import BrowserDataSource
from .canonical_store import CanonicalStore, IngestResult
from .context import Context, ContextState, page_count_for
from .data_source import DataSource
from .frames import records_from_frame, records_to_frame
from .label_interning import InternedColumn, InterningContext, LabelInterner, LabelTable
from .notifications import Publisher, ReplayPublisher, Subscription, SubscriptionManager
from .payloads import ContextUpdate, DataUpdate, DeltaBatch, Pagination, UpdateMode, ViewManagerUpdate, ViewUpdate
from .resource_locks import ResourceLockMap
from .sorting import SortDirection, SortSpec, sort_records
from .view_manager import ColumnSortViewManager, ViewManager

__all__ = [
    "BrowserDataSource",
    "CanonicalStore",
    "ColumnSortViewManager",
    "Context",
    "ContextState",
    "ContextUpdate",
    "DataSource",
    "DataUpdate",
    "DeltaBatch",
    "IngestResult",
    "InternedColumn",
    "InterningContext",
    "LabelInterner",
    "LabelTable",
    "Pagination",
    "Publisher",
    "ReplayPublisher",
    "ResourceLockMap",
    "SortDirection",
    "SortSpec",
    "Subscription",
    "SubscriptionManager",
    "UpdateMode",
    "ViewManager",
    "ViewManagerUpdate",
    "ViewUpdate",
    "page_count_for",
    "records_from_frame",
    "records_to_frame",
    "sort_records",
]
