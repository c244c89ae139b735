"""
Utility modules for chargeflow providing configuration management,
logging, metrics collection, locking decorators and exception handling.
"""

from .exceptions import (
    ChargeflowException,
    SchemaRegistryException,
    InvalidVersionError,
    InvalidActionSuffixError,
    SchemaCompileError,
    AlreadyRegisteredError,
    RemoteRegistryException,
    ValidationException,
    SchemaNotFoundError,
    CannotCastToCallError,
    ConfigurationException,
    ReportException,
    ErrorCodes,
    format_exception_chain
)
from .logger import setup_logger, configure_logging, StructuredLogger
from .metrics import MetricsCollector, get_metrics_collector, reset_global_metrics
from .decorators import ReadWriteLock, read_locked, write_locked, timer
from .config_loader import ConfigLoader

__all__ = [
    # Configuration and logging
    "ConfigLoader",
    "setup_logger",
    "configure_logging",
    "StructuredLogger",

    # Metrics
    "MetricsCollector",
    "get_metrics_collector",
    "reset_global_metrics",

    # Decorators and locking
    "ReadWriteLock",
    "read_locked",
    "write_locked",
    "timer",

    # Exceptions
    "ChargeflowException",
    "SchemaRegistryException",
    "InvalidVersionError",
    "InvalidActionSuffixError",
    "SchemaCompileError",
    "AlreadyRegisteredError",
    "RemoteRegistryException",
    "ValidationException",
    "SchemaNotFoundError",
    "CannotCastToCallError",
    "ConfigurationException",
    "ReportException",
    "ErrorCodes",
    "format_exception_chain"
]
