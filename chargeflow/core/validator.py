"""
Message validator checking decoded OCPP messages against registered JSON schemas.
"""
from dataclasses import dataclass, field
from typing import List, Union

from chargeflow.core.message import CallError, Message, MessageType, is_error_code_valid
from chargeflow.core.result import (
    ACTION_EMPTY_ERR,
    PAYLOAD_EMPTY_ERR,
    RESPONSE_TYPE_UNKNOWN_ERR,
    UNIQUE_ID_EMPTY_ERR,
)
from chargeflow.core.schema_registry import REQUEST_SUFFIX, RESPONSE_SUFFIX, SchemaRegistry
from chargeflow.core.version import LATEST_VERSION, ProtocolVersion
from chargeflow.utils.exceptions import CannotCastToCallError, SchemaNotFoundError
from chargeflow.utils.logger import setup_logger

SEND_NOT_SUPPORTED_ERR = "SEND messages are only supported in OCPP 2.1"
CALL_RESULT_ERROR_NOT_SUPPORTED_ERR = "CALL_RESULT_ERROR messages are only supported in OCPP 2.1"


@dataclass
class ValidationResult:
    """Outcome of validating one message. Validity never flips back to True."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)

    def add_error(self, error: str) -> None:
        self.is_valid = False
        self.errors.append(error)


class MessageValidator:
    """Validates messages against the schemas of a registry."""

    def __init__(self, registry: SchemaRegistry):
        """Initialize the validator.

        Args:
            registry: Source of compiled schemas
        """
        self.registry = registry
        self.logger = setup_logger(__name__)

    def validate_message(
        self,
        version: Union[str, ProtocolVersion],
        message: Message
    ) -> ValidationResult:
        """Validate a message for a protocol version.

        Structural problems and schema violations are collected in the
        returned result. Problems that make validation impossible raise.

        Args:
            version: Protocol version the message belongs to
            message: Decoded message

        Returns:
            ValidationResult with every problem found

        Raises:
            SchemaNotFoundError: No schema is registered for the message's action
            CannotCastToCallError: An error-typed message is not an error variant
        """
        version = ProtocolVersion.parse(version)
        result = ValidationResult()

        if not message.unique_id:
            result.add_error(UNIQUE_ID_EMPTY_ERR)

        message_type = message.message_type_id

        if message_type in (MessageType.CALL, MessageType.SEND):
            if not message.action:
                result.add_error(ACTION_EMPTY_ERR)
                return result

            if message_type == MessageType.SEND and version != LATEST_VERSION:
                result.add_error(SEND_NOT_SUPPORTED_ERR)
                return result

            self._validate_payload(version, message, message.action + REQUEST_SUFFIX, result)

        elif message_type == MessageType.CALL_RESULT:
            if not message.action:
                result.add_error(RESPONSE_TYPE_UNKNOWN_ERR)
                return result

            self._validate_payload(version, message, message.action + RESPONSE_SUFFIX, result)

        elif message_type in (MessageType.CALL_ERROR, MessageType.CALL_RESULT_ERROR):
            if not isinstance(message, CallError):
                raise CannotCastToCallError(unique_id=message.unique_id, message_type=int(message_type))

            if message_type == MessageType.CALL_RESULT_ERROR and version != LATEST_VERSION:
                result.add_error(CALL_RESULT_ERROR_NOT_SUPPORTED_ERR)
                return result

            if not is_error_code_valid(message.error_code):
                result.add_error(f"invalid error code: {message.error_code}")

        else:
            result.add_error(f"Unsupported message type: {message_type}")

        return result

    def _validate_payload(
        self,
        version: ProtocolVersion,
        message: Message,
        schema_action: str,
        result: ValidationResult
    ) -> None:
        if message.payload is None:
            result.add_error(PAYLOAD_EMPTY_ERR)
            return

        schema, found = self.registry.get_schema(version, schema_action)
        if not found:
            raise SchemaNotFoundError(schema_action, version.value, unique_id=message.unique_id)

        for error in schema.validate(message.payload):
            result.add_error(error)

        if not result.is_valid:
            self.logger.debug(f"{schema_action} {message.unique_id}: {len(result.errors)} schema violations")
