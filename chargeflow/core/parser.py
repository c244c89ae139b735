"""
Frame decoder: turns captured OCPP-J lines into correlated request/response exchanges.
"""
import json
from typing import Any, Dict, Iterable, List, Optional, Tuple

from chargeflow.core.message import (
    Call,
    CallError,
    CallResult,
    CallResultError,
    MessageType,
    Send,
)
from chargeflow.core.result import (
    NOT_A_PROTOCOL_MESSAGE_ERR,
    UNIQUE_ID_EMPTY_ERR,
    CorrelatedExchange,
    Result,
)
from chargeflow.utils.logger import setup_logger

Exchanges = Dict[str, CorrelatedExchange]
NonParsable = Dict[str, Result]


def line_key(line_number: int) -> str:
    """Surrogate key for a line that has no usable correlation id."""
    return f"line {line_number}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class FrameParser:
    """Decodes a batch of frames and pairs requests with their responses.

    A parser holds per-batch state only while ``parse`` runs; every call
    starts from scratch. Malformed lines are reported, never raised.
    """

    def __init__(self, default_response_action: Optional[str] = None):
        """Initialize the parser.

        Args:
            default_response_action: Action assumed for responses whose request
                is not part of the batch
        """
        self.logger = setup_logger(__name__)
        self.default_response_action = default_response_action
        self._exchanges: Exchanges = {}
        self._non_parsable: NonParsable = {}

    def parse(self, lines: Iterable[str]) -> Tuple[Exchanges, NonParsable]:
        """Decode and correlate frames.

        Args:
            lines: One JSON frame per line

        Returns:
            Tuple of (exchanges keyed by correlation id, non-parsable entries
            keyed by "line <n>" or by correlation id)
        """
        self._exchanges = {}
        self._non_parsable = {}

        lines = list(lines)
        # A final newline leaves one empty trailing line
        if lines and not lines[-1].strip():
            lines.pop()

        for line_number, line in enumerate(lines, start=1):
            self._parse_line(line_number, line)

        self._resolve_response_actions()

        self.logger.debug(
            f"Parsed {len(self._exchanges)} exchanges, "
            f"{len(self._non_parsable)} non-parsable entries"
        )
        return self._exchanges, self._non_parsable

    def _parse_line(self, line_number: int, line: str) -> None:
        key = line_key(line_number)

        try:
            frame = json.loads(line)
        except (ValueError, RecursionError):
            self._reject(key, NOT_A_PROTOCOL_MESSAGE_ERR)
            return

        if not isinstance(frame, list):
            self._reject(key, NOT_A_PROTOCOL_MESSAGE_ERR)
            return

        if len(frame) < 3:
            self._reject(key, f"Expected at least 3 elements in the message, got {len(frame)}")
            return

        raw_type, unique_id = frame[0], frame[1]
        if not _is_number(raw_type):
            self._reject(key, "Expected first element to be a number (message type ID)")
            return

        if not isinstance(unique_id, str):
            self._reject(key, "Expected second element to be a string (unique ID)")
            return

        missing_id = unique_id == ""
        if missing_id:
            unique_id = key

        message_type = self._message_type(raw_type)
        if message_type is None:
            result = self._reject(unique_id, f"Unknown message type: {raw_type}")
            if missing_id:
                result.add_error(UNIQUE_ID_EMPTY_ERR)
            return

        exchange = self._exchanges.setdefault(unique_id, CorrelatedExchange())

        if message_type in (MessageType.CALL, MessageType.SEND):
            slot = exchange.request
        elif message_type == MessageType.CALL_RESULT:
            slot = exchange.response
        else:
            slot = exchange.response_error

        if missing_id:
            slot.add_error(UNIQUE_ID_EMPTY_ERR)

        if slot.message is not None:
            slot.add_error(f"Duplicate message for unique id {unique_id}")
            self.logger.warning(f"Line {line_number}: duplicate {message_type.name} for {unique_id}")
            return

        if message_type in (MessageType.CALL, MessageType.SEND):
            self._parse_request(slot, message_type, unique_id, frame)
        elif message_type == MessageType.CALL_RESULT:
            self._parse_response(slot, unique_id, frame)
        else:
            self._parse_error(slot, message_type, unique_id, frame)

    @staticmethod
    def _message_type(raw_type: Any) -> Optional[MessageType]:
        if isinstance(raw_type, float):
            if not raw_type.is_integer():
                return None
            raw_type = int(raw_type)
        try:
            return MessageType(raw_type)
        except ValueError:
            return None

    @staticmethod
    def _parse_request(slot: Result, message_type: MessageType, unique_id: str, frame: List[Any]) -> None:
        if len(frame) != 4:
            slot.add_error(f"Expected 4 elements in the message, got {len(frame)}")
            return

        action = frame[2]
        if not isinstance(action, str):
            slot.add_error("Expected third element to be a string (action)")
            return

        message_class = Send if message_type == MessageType.SEND else Call
        slot.set_message(message_class(unique_id=unique_id, action=action, payload=frame[3]))

    @staticmethod
    def _parse_response(slot: Result, unique_id: str, frame: List[Any]) -> None:
        if len(frame) != 3:
            slot.add_error(f"Expected 3 elements in the message, got {len(frame)}")
            return

        slot.set_message(CallResult(unique_id=unique_id, payload=frame[2]))

    @staticmethod
    def _parse_error(slot: Result, message_type: MessageType, unique_id: str, frame: List[Any]) -> None:
        if len(frame) < 4:
            slot.add_error(f"Invalid Call Error message. Expected array length >= 4, got {len(frame)}")
            return

        error_code = frame[2]
        if not isinstance(error_code, str):
            slot.add_error(f"Invalid element {error_code} at 2, expected error code (string)")
            error_code = ""

        description = frame[3] if isinstance(frame[3], str) else ""
        details = frame[4] if len(frame) > 4 else None

        message_class = CallResultError if message_type == MessageType.CALL_RESULT_ERROR else CallError
        slot.set_message(message_class(
            unique_id=unique_id,
            error_code=error_code,
            error_description=description,
            error_details=details
        ))

    def _resolve_response_actions(self) -> None:
        """Give every response the action of its request, or the default action."""
        for exchange in self._exchanges.values():
            response = exchange.get_response()
            if not isinstance(response, CallResult):
                continue

            request = exchange.get_request()
            if request is not None and request.action:
                response.action = request.action
            elif self.default_response_action:
                response.action = self.default_response_action

    def _reject(self, key: str, error: str) -> Result:
        result = self._non_parsable.setdefault(key, Result())
        result.add_error(error)
        self.logger.warning(f"Non-parsable message ({key}): {error}")
        return result
