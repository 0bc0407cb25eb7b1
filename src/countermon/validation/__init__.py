"""
Validation and error handling for the countermon package.

This module provides input validation, the counter error taxonomy and
helpers for consistent error reporting across the application.
"""

from .exceptions import (
    CounterError,
    CounterInvalidError,
    ErrorSeverity,
    ProcessListingError,
    ResolutionError,
    ValidationError,
    handle_cli_error,
    handle_config_error,
    handle_error,
    handle_subprocess_error,
)

from .validators import (
    validate_enum_choice,
    validate_metric_key,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_string_list,
)

__all__ = [
    # Exceptions
    "CounterError",
    "CounterInvalidError",
    "ErrorSeverity",
    "ProcessListingError",
    "ResolutionError",
    "ValidationError",
    # Handlers
    "handle_cli_error",
    "handle_config_error",
    "handle_error",
    "handle_subprocess_error",
    # Validators
    "validate_enum_choice",
    "validate_metric_key",
    "validate_non_empty_string",
    "validate_positive_float",
    "validate_positive_integer",
    "validate_string_list",
]
