"""
OCPP-J message model: the five frame variants and the protocol error codes.
"""
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Optional, Union

from chargeflow.core.version import ProtocolVersion
from chargeflow.utils.exceptions import InvalidVersionError


class MessageType(IntEnum):
    """Numeric message type ids carried in element 0 of a frame."""
    CALL = 2
    CALL_RESULT = 3
    CALL_ERROR = 4
    CALL_RESULT_ERROR = 5
    SEND = 6


class ErrorCode(str, Enum):
    """Error codes allowed in CallError and CallResultError frames."""
    NOT_IMPLEMENTED = "NotImplemented"
    NOT_SUPPORTED = "NotSupported"
    INTERNAL_ERROR = "InternalError"
    MESSAGE_TYPE_NOT_SUPPORTED = "MessageTypeNotSupported"
    PROTOCOL_ERROR = "ProtocolError"
    SECURITY_ERROR = "SecurityError"
    PROPERTY_CONSTRAINT_VIOLATION = "PropertyConstraintViolation"
    OCCURRENCE_CONSTRAINT_VIOLATION = "OccurrenceConstraintViolation"
    # OCPP 1.6 spelling
    OCCURENCE_CONSTRAINT_VIOLATION = "OccurenceConstraintViolation"
    TYPE_CONSTRAINT_VIOLATION = "TypeConstraintViolation"
    GENERIC_ERROR = "GenericError"
    FORMAT_VIOLATION = "FormatViolation"
    # OCPP 1.6 spelling
    FORMATION_VIOLATION = "FormationViolation"
    RPC_FRAMEWORK_ERROR = "RpcFrameworkError"


_VALID_ERROR_CODES = frozenset(code.value for code in ErrorCode)


def is_error_code_valid(code: Union[str, ErrorCode]) -> bool:
    """Check whether an error code is one of the known protocol error codes."""
    if isinstance(code, ErrorCode):
        return True
    return code in _VALID_ERROR_CODES


def format_violation_error(version: Union[str, ProtocolVersion]) -> ErrorCode:
    """Return the format violation error code spelled the way a version expects.

    Args:
        version: Protocol version

    Returns:
        FormationViolation for 1.6, FormatViolation for 2.x

    Raises:
        InvalidVersionError: If the version has no such error code
    """
    version = ProtocolVersion.parse(version)
    if version == ProtocolVersion.V16:
        return ErrorCode.FORMATION_VIOLATION
    if version in (ProtocolVersion.V20, ProtocolVersion.V21):
        return ErrorCode.FORMAT_VIOLATION
    raise InvalidVersionError(version)


def occurrence_constraint_error(version: Union[str, ProtocolVersion]) -> ErrorCode:
    """Return the occurrence constraint error code spelled the way a version expects.

    Args:
        version: Protocol version

    Returns:
        OccurenceConstraintViolation for 1.6, OccurrenceConstraintViolation for 2.x

    Raises:
        InvalidVersionError: If the version has no such error code
    """
    version = ProtocolVersion.parse(version)
    if version == ProtocolVersion.V16:
        return ErrorCode.OCCURENCE_CONSTRAINT_VIOLATION
    if version in (ProtocolVersion.V20, ProtocolVersion.V21):
        return ErrorCode.OCCURRENCE_CONSTRAINT_VIOLATION
    raise InvalidVersionError(version)


class Message:
    """Common shape of every frame variant.

    Every variant exposes ``message_type_id``, ``unique_id``, ``action`` and
    ``payload``. For error frames ``action`` is the error code and ``payload``
    the error details.
    """

    message_type_id: int
    unique_id: str
    action: str
    payload: Any


@dataclass
class Call(Message):
    """Request frame: [2, uniqueId, action, payload]."""
    unique_id: str
    action: str
    payload: Any = None
    message_type_id: int = MessageType.CALL


@dataclass
class Send(Call):
    """Fire-and-forget frame: [6, uniqueId, action, payload]. OCPP 2.1 only."""
    message_type_id: int = MessageType.SEND


@dataclass
class CallResult(Message):
    """Response frame: [3, uniqueId, payload].

    The action is not on the wire; it is carried over from the matching request.
    """
    unique_id: str
    payload: Any = None
    action: str = ""
    message_type_id: int = MessageType.CALL_RESULT


@dataclass
class CallError(Message):
    """Error frame: [4, uniqueId, errorCode, errorDescription, errorDetails]."""
    unique_id: str
    error_code: str
    error_description: str = ""
    error_details: Optional[Any] = None
    message_type_id: int = MessageType.CALL_ERROR

    @property
    def action(self) -> str:
        return self.error_code

    @property
    def payload(self) -> Any:
        return self.error_details


@dataclass
class CallResultError(CallError):
    """Error frame answering a CALL_RESULT: [5, uniqueId, errorCode, ...]. OCPP 2.1 only."""
    message_type_id: int = MessageType.CALL_RESULT_ERROR
