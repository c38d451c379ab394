"""
Validation helpers: issue/error types and config checks.
"""

from .errors import ValidationError, ValidationIssue
from .config_validation import check_raw_params, validate_data_source_config

__all__ = ["ValidationError", "ValidationIssue", "check_raw_params", "validate_data_source_config"]
