"""
Custom exception classes for better error categorization.

This module defines the exception hierarchy used by the caching engine.
Each exception carries a machine-readable error code and a context
dictionary so failures can be logged in a structured way.
"""

from typing import Optional, Any, Dict


class LottoCacheError(Exception):
    """
    Base exception class for all cache engine errors.

    Attributes:
        message (str): Human-readable error message
        error_code (str): Machine-readable error code for categorization
        context (Dict[str, Any]): Additional context information
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.context = context or {}

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'context': self.context
        }


class ConfigurationError(LottoCacheError):
    """
    Raised when cache configuration is missing or invalid.

    The error keeps the offending environment variables so the monitor CLI
    can print a troubleshooting message.
    """

    def __init__(
        self,
        message: str,
        invalid_values: Optional[Dict[str, Any]] = None,
        validation_errors: Optional[list] = None,
        env_file_path: Optional[str] = None
    ):
        context = {}
        if invalid_values:
            context['invalid_values'] = invalid_values
        if validation_errors:
            context['validation_errors'] = validation_errors
        if env_file_path:
            context['env_file_path'] = env_file_path

        super().__init__(message, "CONFIG_ERROR", context)
        self.invalid_values = invalid_values or {}
        self.validation_errors = validation_errors or []
        self.env_file_path = env_file_path

    def get_troubleshooting_message(self) -> str:
        """
        Get a detailed troubleshooting message for this configuration error.

        Returns:
            str: Formatted message with guidance on how to fix the issue
        """
        message = [f"Configuration Error: {self.message}"]

        if self.invalid_values:
            message.append("\nInvalid environment variable values:")
            for key, value in self.invalid_values.items():
                message.append(f"  - {key}: {value}")
            message.append("\nPlease check the data types and formats of these variables.")

        if self.validation_errors:
            message.append("\nConfiguration validation errors:")
            for error in self.validation_errors:
                message.append(f"  - {error}")

        if self.env_file_path:
            message.append(f"\nEnvironment file path: {self.env_file_path}")

        return "\n".join(message)


class DataPersistenceError(LottoCacheError):
    """
    Raised when the durable key-value medium fails.

    This includes file I/O errors, JSON serialization errors, a corrupt
    storage document and a medium that has run out of room.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        context = {}
        if file_path:
            context['file_path'] = file_path
        if operation:
            context['operation'] = operation
        if original_error:
            context['original_error'] = str(original_error)
            context['original_error_type'] = type(original_error).__name__

        super().__init__(message, "DATA_PERSISTENCE_ERROR", context)
        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error


class ValidationError(LottoCacheError):
    """
    Raised when a caller passes an invalid argument.

    Examples are a non-positive TTL, a malformed date or an unknown
    domain event.
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        expected_type: Optional[str] = None,
        actual_value: Optional[Any] = None
    ):
        context = {}
        if field_name:
            context['field_name'] = field_name
        if expected_type:
            context['expected_type'] = expected_type
        if actual_value is not None:
            context['actual_value'] = str(actual_value)
            context['actual_type'] = type(actual_value).__name__

        super().__init__(message, "VALIDATION_ERROR", context)
        self.field_name = field_name
        self.expected_type = expected_type
        self.actual_value = actual_value


class CacheError(LottoCacheError):
    """
    Raised when cache operations fail.

    This covers unknown namespaces and failures inside store operations.
    """

    def __init__(
        self,
        message: str,
        cache_key: Optional[str] = None,
        operation: Optional[str] = None,
        namespace: Optional[str] = None
    ):
        context = {}
        if cache_key:
            context['cache_key'] = cache_key
        if operation:
            context['operation'] = operation
        if namespace:
            context['namespace'] = namespace

        super().__init__(message, "CACHE_ERROR", context)
        self.cache_key = cache_key
        self.operation = operation
        self.namespace = namespace


class InvalidPatternError(CacheError):
    """Raised when an invalidation pattern is not a valid regular expression."""

    def __init__(self, message: str, pattern: str, namespace: Optional[str] = None):
        super().__init__(message, cache_key=pattern, operation="INVALIDATE_PATTERN", namespace=namespace)
        self.error_code = "INVALID_PATTERN_ERROR"
        self.pattern = pattern
