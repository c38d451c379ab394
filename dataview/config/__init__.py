"""
Config models for DataSources and ViewManagers.
Loading from disk lives in dataview.config.loader.
"""

from .model import (
    ContextDefinition,
    ContextSelectedMode,
    DataSourceConfig,
    DataSourceParams,
    FilterDefinition,
    PaginationParams,
    ViewManagerParams,
)

__all__ = [
    "ContextDefinition",
    "ContextSelectedMode",
    "DataSourceConfig",
    "DataSourceParams",
    "FilterDefinition",
    "PaginationParams",
    "ViewManagerParams",
]
