"""
OCPP protocol versions understood by chargeflow.
"""
from enum import Enum
from typing import Any, Union

from chargeflow.utils.exceptions import InvalidVersionError


class ProtocolVersion(str, Enum):
    """Supported OCPP protocol versions."""
    V15 = "1.5"
    V16 = "1.6"
    V20 = "2.0"
    V21 = "2.1"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def latest(cls) -> "ProtocolVersion":
        """Return the newest supported version."""
        return cls.V21

    @classmethod
    def parse(cls, value: Union[str, "ProtocolVersion"]) -> "ProtocolVersion":
        """Convert user input into a ProtocolVersion.

        "2.0.1" is accepted as an alias of "2.0".

        Args:
            value: Version string or ProtocolVersion

        Returns:
            Matching ProtocolVersion

        Raises:
            InvalidVersionError: If the version is not supported
        """
        if isinstance(value, cls):
            return value

        normalized = str(value).strip()
        if normalized == "2.0.1":
            normalized = cls.V20.value

        try:
            return cls(normalized)
        except ValueError:
            raise InvalidVersionError(value) from None


LATEST_VERSION = ProtocolVersion.latest()


def is_valid_protocol_version(value: Any) -> bool:
    """Check whether a value names a supported protocol version.

    Args:
        value: Candidate version

    Returns:
        True if supported, False otherwise
    """
    try:
        ProtocolVersion.parse(value)
    except InvalidVersionError:
        return False
    return True
