"""
Per-message parse outcomes and the request/response pairing they are stored in.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from chargeflow.core.message import Message

PAYLOAD_EMPTY_ERR = "payload is empty"
ACTION_EMPTY_ERR = "action is empty"
UNIQUE_ID_EMPTY_ERR = "unique id is empty"
RESPONSE_TYPE_UNKNOWN_ERR = "unable to determine response type"
NOT_A_PROTOCOL_MESSAGE_ERR = "Message is not a valid OCPP message"


@dataclass
class Result:
    """Outcome of decoding one frame.

    ``is_valid`` only ever goes from True to False: adding an error is the
    only way to change it.
    """
    message: Optional[Message] = None
    errors: List[str] = field(default_factory=list)
    is_valid: bool = True

    def add_error(self, error: str) -> None:
        """Record an error and mark the result invalid.

        Args:
            error: Human-readable diagnostic
        """
        self.is_valid = False
        self.errors.append(error)

    def set_message(self, message: Message) -> None:
        self.message = message

    def is_empty(self) -> bool:
        """True when nothing has been stored or reported on this result."""
        return self.message is None and not self.errors


@dataclass
class CorrelatedExchange:
    """Request, response and response-error sharing one correlation id."""
    request: Result = field(default_factory=Result)
    response: Result = field(default_factory=Result)
    response_error: Result = field(default_factory=Result)

    def get_request(self) -> Optional[Message]:
        return self.request.message

    def get_response(self) -> Optional[Message]:
        return self.response.message

    def get_response_error(self) -> Optional[Message]:
        return self.response_error.message

    def add_request_error(self, error: str) -> None:
        self.request.add_error(error)

    def add_response_error(self, error: str) -> None:
        self.response.add_error(error)

    def response_result(self) -> Result:
        """Return the slot reported as the exchange's response.

        The response-error slot wins as soon as anything was stored in it.
        """
        if not self.response_error.is_empty():
            return self.response_error
        return self.response

    @property
    def is_valid(self) -> bool:
        return self.request.is_valid and self.response.is_valid and self.response_error.is_valid
