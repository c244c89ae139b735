"""
Schema registry contract and the JSON schema compiler registries share.
"""
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Union

from jsonschema import Draft4Validator, validators
from jsonschema.exceptions import SchemaError

from chargeflow.core.version import ProtocolVersion
from chargeflow.utils.exceptions import InvalidActionSuffixError, SchemaCompileError

RawSchema = Union[bytes, str, Dict[str, Any]]

REQUEST_SUFFIX = "Request"
RESPONSE_SUFFIX = "Response"


class CompiledSchema:
    """A checked JSON schema bound to the validator class its draft requires."""

    def __init__(self, document: Dict[str, Any], validator):
        self.document = document
        self._validator = validator

    def validate(self, instance: Any) -> List[str]:
        """Validate an instance against the schema.

        Args:
            instance: Decoded JSON value

        Returns:
            One message per violation, ordered by instance path. Empty when valid.
        """
        errors = sorted(self._validator.iter_errors(instance), key=lambda e: e.json_path)
        return [f"{error.json_path}: {error.message}" for error in errors]

    def is_valid(self, instance: Any) -> bool:
        return self._validator.is_valid(instance)


class SchemaCompiler:
    """Turns raw schema documents into CompiledSchema objects.

    Each registry owns its own compiler, so compiler settings never leak
    between registries.
    """

    def __init__(self, default_validator=Draft4Validator, check_formats: bool = True):
        """Initialize the compiler.

        Args:
            default_validator: jsonschema validator class used when a schema
                does not declare ``$schema``. OCPP schemas are draft-04.
            check_formats: Whether ``format`` keywords are asserted
        """
        self.default_validator = default_validator
        self.check_formats = check_formats

    def compile(self, raw_schema: RawSchema) -> CompiledSchema:
        """Parse and check a schema.

        Args:
            raw_schema: Schema as JSON bytes, JSON text or an already decoded dict

        Returns:
            CompiledSchema ready for validation

        Raises:
            SchemaCompileError: If the schema is not JSON or not a valid JSON schema
        """
        document = self._decode(raw_schema)

        validator_class = validators.validator_for(document, default=self.default_validator)
        try:
            validator_class.check_schema(document)
        except SchemaError as e:
            raise SchemaCompileError(f"invalid JSON schema: {e.message}", cause=e) from e

        format_checker = validator_class.FORMAT_CHECKER if self.check_formats else None
        return CompiledSchema(document, validator_class(document, format_checker=format_checker))

    @staticmethod
    def _decode(raw_schema: RawSchema) -> Dict[str, Any]:
        if isinstance(raw_schema, dict):
            return raw_schema

        try:
            document = json.loads(raw_schema)
        except (TypeError, ValueError) as e:
            raise SchemaCompileError(f"schema is not valid JSON: {e}", cause=e) from e

        if not isinstance(document, dict):
            raise SchemaCompileError("schema must be a JSON object")
        return document


def check_action_suffix(action: str) -> None:
    """Ensure an action names a request or a response schema.

    Raises:
        InvalidActionSuffixError: If the action has neither suffix
    """
    if not action or not action.endswith((REQUEST_SUFFIX, RESPONSE_SUFFIX)):
        raise InvalidActionSuffixError(action)


class SchemaRegistry(ABC):
    """Store of compiled schemas keyed by protocol version and action.

    Actions are message actions with a "Request" or "Response" suffix, for
    example "BootNotificationRequest".
    """

    @abstractmethod
    def register_schema(
        self,
        version: Union[str, ProtocolVersion],
        action: str,
        raw_schema: RawSchema,
        overwrite: Optional[bool] = None
    ) -> None:
        """Compile and store a schema.

        Args:
            version: Protocol version the schema belongs to
            action: Action name ending in "Request" or "Response"
            raw_schema: Schema document
            overwrite: Replace an existing schema instead of failing.
                None falls back to the registry default.

        Raises:
            InvalidVersionError: Unsupported version
            InvalidActionSuffixError: Action without a request/response suffix
            SchemaCompileError: Schema cannot be compiled
            AlreadyRegisteredError: Schema exists and overwrite was not requested
        """

    @abstractmethod
    def get_schema(
        self,
        version: Union[str, ProtocolVersion],
        action: str
    ) -> Tuple[Optional[CompiledSchema], bool]:
        """Look up a compiled schema. Never raises.

        Returns:
            Tuple of (schema or None, found)
        """

    @abstractmethod
    def type(self) -> str:
        """Short tag naming the registry implementation."""

    def close(self) -> None:
        """Release resources held by the registry."""
