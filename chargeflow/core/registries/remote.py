"""
Schema registry backed by a remote Confluent-style schema registry over HTTP.
"""
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

import httpx

from chargeflow.core.schema_registry import (
    CompiledSchema,
    RawSchema,
    SchemaCompiler,
    SchemaRegistry,
    check_action_suffix,
)
from chargeflow.core.version import ProtocolVersion, is_valid_protocol_version
from chargeflow.utils.decorators import ReadWriteLock
from chargeflow.utils.exceptions import (
    AlreadyRegisteredError,
    ChargeflowException,
    RemoteRegistryException,
    SchemaCompileError,
)
from chargeflow.utils.logger import setup_logger

ACCEPT_HEADER = (
    "application/vnd.schemaregistry.v1+json, "
    "application/vnd.schemaregistry+json, "
    "application/json"
)
CONTENT_TYPE = "application/vnd.schemaregistry.v1+json"
DEFAULT_API_KEY_HEADER = "X-API-Key"
DEFAULT_TIMEOUT = 5.0
DEFAULT_CACHE_REFRESH = 600.0


@dataclass
class RegistryAuth:
    """Credentials sent with every registry request."""
    headers: Dict[str, str] = field(default_factory=dict)
    basic: Optional[Tuple[str, str]] = None

    @classmethod
    def none(cls) -> "RegistryAuth":
        return cls()

    @classmethod
    def basic_auth(cls, username: str, password: str) -> "RegistryAuth":
        return cls(basic=(username, password))

    @classmethod
    def bearer_token(cls, token: str) -> "RegistryAuth":
        return cls(headers={"Authorization": f"Bearer {token}"})

    @classmethod
    def api_key(cls, key: str, header: Optional[str] = None) -> "RegistryAuth":
        return cls(headers={header or DEFAULT_API_KEY_HEADER: key})

    @classmethod
    def custom_header(cls, name: str, value: str) -> "RegistryAuth":
        return cls(headers={name: value})

    def httpx_auth(self) -> Optional[httpx.Auth]:
        if self.basic:
            return httpx.BasicAuth(*self.basic)
        return None


def subject_name(version: ProtocolVersion, action: str) -> str:
    """Build the registry subject for a schema, e.g. ocpp-1-6-BootNotificationRequest."""
    return f"ocpp-{version.value.replace('.', '-')}-{action}"


class RemoteSchemaRegistry(SchemaRegistry):
    """Schema registry reading from and writing to a remote HTTP registry.

    Fetched schemas are compiled locally and cached for ``cache_refresh``
    seconds. Lookups never raise: any transport, HTTP or compile failure is
    logged and reported as not found.
    """

    TYPE = "remote"

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        cache_refresh: float = DEFAULT_CACHE_REFRESH,
        auth: Optional[RegistryAuth] = None,
        compiler: Optional[SchemaCompiler] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """Initialize the remote registry.

        Args:
            url: Base URL of the schema registry
            timeout: Request timeout in seconds
            cache_refresh: Seconds a fetched schema stays cached
            auth: Credentials, None for anonymous access
            compiler: Schema compiler; a fresh one is created when omitted
            transport: Optional httpx transport, used to stub the network in tests
        """
        if not url:
            raise RemoteRegistryException("remote registry URL is required")

        self.logger = setup_logger(__name__)
        self.url = url.rstrip("/") + "/"
        self.timeout = timeout
        self.cache_refresh = cache_refresh
        self.auth = auth or RegistryAuth.none()
        self.compiler = compiler or SchemaCompiler()

        headers = {"Accept": ACCEPT_HEADER}
        headers.update(self.auth.headers)
        self._client = httpx.Client(
            base_url=self.url,
            timeout=timeout,
            headers=headers,
            auth=self.auth.httpx_auth(),
            transport=transport
        )

        self._cache: Dict[Tuple[ProtocolVersion, str], Tuple[CompiledSchema, float]] = {}
        self._rw_lock = ReadWriteLock()

    def register_schema(
        self,
        version: Union[str, ProtocolVersion],
        action: str,
        raw_schema: RawSchema,
        overwrite: Optional[bool] = None
    ) -> None:
        """Publish a schema as a new version of its subject.

        The schema is compiled locally first, so invalid documents never reach
        the registry. ``overwrite`` is accepted for interface compatibility; the
        remote registry decides on conflicts itself.

        Raises:
            InvalidVersionError: Unsupported version
            InvalidActionSuffixError: Action without a request/response suffix
            SchemaCompileError: Schema invalid locally or rejected with 422
            AlreadyRegisteredError: Registry answered 409
            RemoteRegistryException: Transport failure or any other status
        """
        version = ProtocolVersion.parse(version)
        check_action_suffix(action)
        compiled = self.compiler.compile(raw_schema)

        subject = subject_name(version, action)
        body = {
            "schema": json.dumps(compiled.document, separators=(",", ":")),
            "schemaType": "JSONSCHEMA",
        }
        response = self._request(
            "POST",
            f"subjects/{subject}/versions",
            content=json.dumps(body),
            headers={"Content-Type": CONTENT_TYPE}
        )

        if response.status_code == 409:
            raise AlreadyRegisteredError(version.value, action)
        if response.status_code == 422:
            raise SchemaCompileError(
                f"registry rejected schema: {self._error_message(response)}",
                version=version.value,
                action=action
            )
        if response.status_code != 200:
            raise RemoteRegistryException(
                f"failed to register schema: {self._error_message(response)}",
                url=str(response.request.url),
                status_code=response.status_code
            )

        self._invalidate(version, action)
        self.logger.info(f"Registered schema {action} for OCPP {version} as subject {subject}")

    def get_schema(
        self,
        version: Union[str, ProtocolVersion],
        action: str
    ) -> Tuple[Optional[CompiledSchema], bool]:
        if not is_valid_protocol_version(version):
            return None, False
        version = ProtocolVersion.parse(version)

        cached = self._cached(version, action)
        if cached is not None:
            return cached, True

        try:
            compiled = self._fetch_schema(version, action)
        except (ChargeflowException, httpx.HTTPError) as e:
            self.logger.warning(f"Failed to fetch schema {action} for OCPP {version}: {e}")
            return None, False

        if compiled is None:
            return None, False

        with self._rw_lock.write_lock():
            self._cache[(version, action)] = (compiled, time.monotonic())
        return compiled, True

    def get_latest_version(self, version: ProtocolVersion, action: str) -> Optional[int]:
        """Return the newest registered version number of a schema's subject.

        Returns:
            Latest version number, or None when the subject does not exist
        """
        response = self._request("GET", f"subjects/{subject_name(version, action)}/versions")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)

        try:
            versions = response.json()
        except ValueError as e:
            raise RemoteRegistryException(
                f"registry returned a non-JSON version list: {e}",
                url=str(response.request.url),
                cause=e
            ) from e

        if not isinstance(versions, list) or not all(isinstance(v, int) for v in versions):
            raise RemoteRegistryException(
                "unexpected version list from registry",
                url=str(response.request.url)
            )
        return max(versions) if versions else None

    def type(self) -> str:
        return self.TYPE

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RemoteSchemaRegistry":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _fetch_schema(self, version: ProtocolVersion, action: str) -> Optional[CompiledSchema]:
        latest = self.get_latest_version(version, action)
        if latest is None:
            return None

        response = self._request(
            "GET",
            f"subjects/{subject_name(version, action)}/versions/{latest}/schema"
        )
        if response.status_code == 404:
            return None
        self._raise_for_status(response)

        self.logger.debug(f"Fetched schema {action} for OCPP {version} (subject version {latest})")
        return self.compiler.compile(self._extract_schema(response))

    @staticmethod
    def _extract_schema(response: httpx.Response) -> Any:
        """Unwrap the schema from the shapes registries answer with.

        Either {"schema": "<json text>"}, a JSON string holding the schema,
        or the schema document itself.
        """
        try:
            decoded = response.json()
        except ValueError as e:
            raise SchemaCompileError(f"registry returned a non-JSON schema: {e}", cause=e) from e

        if isinstance(decoded, dict) and isinstance(decoded.get("schema"), str):
            return decoded["schema"]
        return decoded

    def _cached(self, version: ProtocolVersion, action: str) -> Optional[CompiledSchema]:
        with self._rw_lock.read_lock():
            entry = self._cache.get((version, action))

        if entry is None:
            return None
        compiled, fetched_at = entry
        if time.monotonic() - fetched_at >= self.cache_refresh:
            return None
        return compiled

    def _invalidate(self, version: ProtocolVersion, action: str) -> None:
        with self._rw_lock.write_lock():
            self._cache.pop((version, action), None)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteRegistryException(
                f"request to schema registry failed: {e}",
                url=f"{self.url}{path}",
                cause=e
            ) from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        raise RemoteRegistryException(
            f"schema registry returned {response.status_code}: {self._error_message(response)}",
            url=str(response.request.url),
            status_code=response.status_code
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.text
