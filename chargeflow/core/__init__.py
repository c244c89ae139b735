"""
Core module for chargeflow containing the decoding and validation pipeline.

This module provides:
- Message model: Call, CallResult, CallError, Send, CallResultError
- FrameParser: Decoder pairing requests with their responses
- MessageValidator: Schema validation of decoded messages
- SchemaRegistry: Contract for stores of compiled schemas
- ResultAggregator: Reduction of outcomes into a Report with Statistics
- ValidationService: End-to-end pipeline over captured frames
"""

from .version import ProtocolVersion, LATEST_VERSION, is_valid_protocol_version
from .message import (
    Message,
    MessageType,
    Call,
    CallResult,
    CallError,
    Send,
    CallResultError,
    ErrorCode,
    is_error_code_valid,
    format_violation_error,
    occurrence_constraint_error
)
from .result import Result, CorrelatedExchange
from .schema_registry import SchemaRegistry, SchemaCompiler, CompiledSchema
from .parser import FrameParser
from .validator import MessageValidator, ValidationResult
from .report import Report, Statistics, ResultAggregator
from .service import ValidationService

__all__ = [
    "ProtocolVersion",
    "LATEST_VERSION",
    "is_valid_protocol_version",
    "Message",
    "MessageType",
    "Call",
    "CallResult",
    "CallError",
    "Send",
    "CallResultError",
    "ErrorCode",
    "is_error_code_valid",
    "format_violation_error",
    "occurrence_constraint_error",
    "Result",
    "CorrelatedExchange",
    "SchemaRegistry",
    "SchemaCompiler",
    "CompiledSchema",
    "FrameParser",
    "MessageValidator",
    "ValidationResult",
    "Report",
    "Statistics",
    "ResultAggregator",
    "ValidationService"
]
