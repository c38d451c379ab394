class DataViewError(Exception):
    """Base exception for all dataview errors"""
    pass

class ConfigurationError(DataViewError):
    """
    Invalid engine configuration: duplicate filter/context names, unknown filter type,
    unknown comparison level, unknown context or page index
    """
    pass

class DataShapeError(DataViewError):
    """
    A record doesn't have the shape the store expects
    missing primary key, conflicting interned id, etc
    """
    pass

class InvariantViolation(DataViewError):
    """Internal state the engine should never reach - a programming error, not bad input"""
    pass
