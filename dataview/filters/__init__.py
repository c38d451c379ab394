"""
Filters: the predicates DataSources evaluate against records, and the registry
that builds them from a type name.
"""

from .base_filter import BaseFilter, normalise_params
from .int_filter import IntFilter
from .registry import FilterRegistry
from .string_filter import ComparisonLevel, StringFilter


def create_default_filter_registry() -> FilterRegistry:
    """
    Builds a registry with all built-in filter types ("string", "int").
    """
    registry = FilterRegistry()
    registry.register(StringFilter.type_name, StringFilter)
    registry.register(IntFilter.type_name, IntFilter)
    return registry


__all__ = [
    "BaseFilter",
    "ComparisonLevel",
    "FilterRegistry",
    "IntFilter",
    "StringFilter",
    "create_default_filter_registry",
    "normalise_params",
]
