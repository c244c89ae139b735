"""
Logging setup for chargeflow: console output on stderr, optional rotating
log file, and a structured variant for run summaries.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Process-wide defaults applied by setup_logger when no config is passed
_default_config: Dict[str, Any] = {}


def configure_logging(config: Optional[Dict[str, Any]] = None, level: Optional[str] = None) -> None:
    """Set the logging defaults used by every subsequent setup_logger call.

    Args:
        config: The ``logging`` config section
        level: Log level override, e.g. from ``--log-level``
    """
    global _default_config
    _default_config = dict(config or {})
    if level:
        _default_config['level'] = level


def setup_logger(
    name: str,
    config: Optional[Dict[str, Any]] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """Setup a logger with the specified configuration.

    Args:
        name: Logger name
        config: Logging configuration; the configure_logging defaults when omitted
        level: Log level override

    Returns:
        Configured logger instance
    """
    if config is None:
        config = _default_config

    logger = logging.getLogger(name)
    # Reconfiguring replaces handlers instead of stacking them
    logger.handlers.clear()

    log_level = getattr(logging, (level or config.get('level') or 'INFO').upper())
    logger.setLevel(log_level)

    handlers = [logging.StreamHandler(sys.stderr)]
    formats = [config.get('console_format', DEFAULT_CONSOLE_FORMAT)]

    log_file = config.get('file')
    if log_file:
        handlers.append(_create_file_handler(log_file, config))
        formats.append(config.get('file_format', DEFAULT_FILE_FORMAT))

    date_format = config.get('date_format', DEFAULT_DATE_FORMAT)
    for handler, fmt in zip(handlers, formats):
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter(fmt, datefmt=date_format))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def _create_file_handler(log_file: str, config: Dict[str, Any]) -> logging.Handler:
    """Create the log file handler; rotation is disabled with max_file_size 0."""
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    max_bytes = config.get('max_file_size', 10 * 1024 * 1024)
    if max_bytes > 0:
        return logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=config.get('backup_count', 5),
            encoding='utf-8'
        )
    return logging.FileHandler(log_file, encoding='utf-8')


class StructuredLogger:
    """Logger rendering fields as ``message | key=value | ...``.

    Used for per-run summaries so log processors can pick the counts apart.
    """

    def __init__(self, name: str, config: Optional[Dict[str, Any]] = None):
        self.logger = setup_logger(name, config)

    def log(self, level: int, message: str, **fields) -> None:
        if fields:
            message = " | ".join([message] + [f"{k}={v}" for k, v in fields.items()])
        self.logger.log(level, message)

    def info(self, message: str, **fields) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields) -> None:
        self.log(logging.WARNING, message, **fields)
