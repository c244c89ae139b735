"""
Custom exceptions for chargeflow providing specific error types,
error context, and structured error handling.
"""
from typing import Any, Dict, Optional


class ChargeflowException(Exception):
    """Base exception class for all chargeflow errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize chargeflow exception.

        Args:
            message: Error message
            error_code: Optional error code for categorization
            context: Optional context information
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return string representation of the exception."""
        result = self.message

        if self.error_code:
            result = f"[{self.error_code}] {result}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            result += f" (Context: {context_str})"

        return result


class SchemaRegistryException(ChargeflowException):
    """Exception raised by schema registries."""

    def __init__(
        self,
        message: str,
        version: Optional[str] = None,
        action: Optional[str] = None,
        **kwargs
    ):
        """Initialize schema registry exception.

        Args:
            message: Error message
            version: Protocol version the operation targeted
            action: Schema action name the operation targeted
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if version:
            context['version'] = version
        if action:
            context['action'] = action
        kwargs['context'] = context

        super().__init__(message, **kwargs)
        self.version = version
        self.action = action


class InvalidVersionError(SchemaRegistryException):
    """Raised for a protocol version the tool does not support."""

    def __init__(self, version: Any, **kwargs):
        kwargs.setdefault('error_code', ErrorCodes.REGISTRY_INVALID_VERSION)
        super().__init__(f"unsupported OCPP version: {version}", **kwargs)
        self.version = version


class InvalidActionSuffixError(SchemaRegistryException):
    """Raised when a schema action is neither a request nor a response."""

    def __init__(self, action: str, **kwargs):
        kwargs.setdefault('error_code', ErrorCodes.REGISTRY_INVALID_ACTION)
        super().__init__(
            f"action must end with 'Request' or 'Response': {action}",
            **kwargs
        )
        self.action = action


class SchemaCompileError(SchemaRegistryException):
    """Raised when a raw schema cannot be parsed or compiled."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('error_code', ErrorCodes.REGISTRY_COMPILE_FAILED)
        super().__init__(message, **kwargs)


class AlreadyRegisteredError(SchemaRegistryException):
    """Raised when a schema exists and overwriting was not requested."""

    def __init__(self, version: str, action: str, **kwargs):
        kwargs.setdefault('error_code', ErrorCodes.REGISTRY_ALREADY_REGISTERED)
        super().__init__(
            f"schema for action {action} already registered for version {version}",
            version=version,
            action=action,
            **kwargs
        )


class RemoteRegistryException(SchemaRegistryException):
    """Exception raised for failed remote registry calls."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        """Initialize remote registry exception.

        Args:
            message: Error message
            url: Request URL
            status_code: HTTP status code returned by the registry
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if url:
            context['url'] = url
        if status_code:
            context['status_code'] = status_code
        kwargs['context'] = context
        kwargs.setdefault('error_code', ErrorCodes.REGISTRY_REMOTE_FAILED)

        super().__init__(message, **kwargs)
        self.url = url
        self.status_code = status_code


class ValidationException(ChargeflowException):
    """Exception raised when a message cannot be validated at all."""

    def __init__(
        self,
        message: str,
        unique_id: Optional[str] = None,
        message_type: Optional[int] = None,
        **kwargs
    ):
        """Initialize validation exception.

        Args:
            message: Error message
            unique_id: Correlation id of the message
            message_type: Numeric message type id
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if unique_id:
            context['unique_id'] = unique_id
        if message_type:
            context['message_type'] = message_type
        kwargs['context'] = context

        super().__init__(message, **kwargs)
        self.unique_id = unique_id
        self.message_type = message_type


class SchemaNotFoundError(ValidationException):
    """Raised when no schema is registered for a message's action."""

    def __init__(self, action: str, version: str, **kwargs):
        kwargs.setdefault('error_code', ErrorCodes.VALIDATION_SCHEMA_NOT_FOUND)
        super().__init__(
            f"no schema found for action {action} in version {version}",
            **kwargs
        )
        self.action = action
        self.version = version


class CannotCastToCallError(ValidationException):
    """Raised when an error-typed message is not an error variant."""

    def __init__(self, **kwargs):
        kwargs.setdefault('error_code', ErrorCodes.VALIDATION_CANNOT_CAST)
        super().__init__("cannot cast message to CallError", **kwargs)


class ConfigurationException(ChargeflowException):
    """Exception raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_file: Optional[str] = None,
        **kwargs
    ):
        """Initialize configuration exception.

        Args:
            message: Error message
            config_key: Configuration key that caused the error
            config_file: Configuration file that caused the error
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if config_key:
            context['config_key'] = config_key
        if config_file:
            context['config_file'] = config_file
        kwargs['context'] = context

        super().__init__(message, **kwargs)
        self.config_key = config_key
        self.config_file = config_file


class ReportException(ChargeflowException):
    """Exception raised when a report cannot be written."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        context = kwargs.get('context', {})
        if path:
            context['path'] = path
        kwargs['context'] = context

        super().__init__(message, **kwargs)
        self.path = path


class ErrorCodes:
    """Standard error codes for chargeflow exceptions."""

    # Schema registry errors
    REGISTRY_INVALID_VERSION = "REG_001"
    REGISTRY_INVALID_ACTION = "REG_002"
    REGISTRY_COMPILE_FAILED = "REG_003"
    REGISTRY_ALREADY_REGISTERED = "REG_004"
    REGISTRY_REMOTE_FAILED = "REG_005"

    # Validation errors
    VALIDATION_SCHEMA_NOT_FOUND = "VAL_001"
    VALIDATION_CANNOT_CAST = "VAL_002"

    # Configuration errors
    CONFIG_NOT_FOUND = "CFG_001"
    CONFIG_INVALID_FORMAT = "CFG_002"
    CONFIG_MISSING_REQUIRED = "CFG_003"
    CONFIG_INVALID_VALUE = "CFG_004"

    # Report errors
    REPORT_UNSUPPORTED_FORMAT = "RPT_001"
    REPORT_WRITE_FAILED = "RPT_002"


def format_exception_chain(exception: Exception, include_cause: bool = True) -> str:
    """Format exception with its cause chain.

    Args:
        exception: Exception to format
        include_cause: Whether to include cause exceptions

    Returns:
        Formatted exception string
    """
    lines = []
    current = exception

    while current:
        lines.append(f"{type(current).__name__}: {current}")

        if include_cause and getattr(current, 'cause', None):
            current = current.cause
            lines.append("  Caused by:")
        else:
            break

    return "\n".join(lines)
