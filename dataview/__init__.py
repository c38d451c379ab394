"""
Top-level package for the dataview engine.

Reactive in-memory views over a keyed record collection: filtering, sorting,
pagination and incremental propagation of changes to subscribers.
Most code should import from submodules such as:
    dataview.core
    dataview.filters
    dataview.config
"""

__version__ = "0.1.0"

__all__: list[str] = []
