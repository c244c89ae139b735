"""Unit tests for RemoteSchemaRegistry against a stubbed HTTP transport."""

import base64
import json
from typing import Dict, List

import httpx
import pytest

from chargeflow.core.registries import RegistryAuth, RemoteSchemaRegistry
from chargeflow.core.registries.remote import subject_name
from chargeflow.core.version import ProtocolVersion
from chargeflow.utils.exceptions import (
    AlreadyRegisteredError,
    RemoteRegistryException,
    SchemaCompileError,
)

BASE_URL = "http://registry.test"


class FakeSchemaRegistry:
    """In-memory stand-in for a Confluent-style schema registry."""

    def __init__(self):
        self.subjects: Dict[str, List[str]] = {}
        self.requests: List[httpx.Request] = []
        self.fail_with: int = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error_code": self.fail_with, "message": "boom"})

        parts = request.url.path.strip("/").split("/")
        # subjects/{subject}/versions[/{version}/schema]
        subject = parts[1]

        if request.method == "POST":
            body = json.loads(request.content)
            versions = self.subjects.setdefault(subject, [])
            if body["schema"] in versions:
                return httpx.Response(409, json={"error_code": 409, "message": "already exists"})
            versions.append(body["schema"])
            return httpx.Response(200, json={"id": len(versions)})

        if subject not in self.subjects:
            return httpx.Response(404, json={"error_code": 40401, "message": "Subject not found"})

        if len(parts) == 3:
            return httpx.Response(200, json=list(range(1, len(self.subjects[subject]) + 1)))

        version = int(parts[3])
        return httpx.Response(200, json={"schema": self.subjects[subject][version - 1]})

    def put(self, version: ProtocolVersion, action: str, schema: dict) -> None:
        self.subjects.setdefault(subject_name(version, action), []).append(json.dumps(schema))


@pytest.fixture
def fake() -> FakeSchemaRegistry:
    return FakeSchemaRegistry()


@pytest.fixture
def remote(fake) -> RemoteSchemaRegistry:
    registry = RemoteSchemaRegistry(BASE_URL, transport=httpx.MockTransport(fake.handler))
    yield registry
    registry.close()


class TestRegistryAuth:
    """Tests for RegistryAuth."""

    def test_none(self) -> None:
        auth = RegistryAuth.none()
        assert auth.headers == {}
        assert auth.httpx_auth() is None

    def test_bearer_token(self) -> None:
        assert RegistryAuth.bearer_token("t0k").headers == {"Authorization": "Bearer t0k"}

    def test_api_key_default_and_custom_header(self) -> None:
        assert RegistryAuth.api_key("k").headers == {"X-API-Key": "k"}
        assert RegistryAuth.api_key("k", "X-Key").headers == {"X-Key": "k"}

    def test_custom_header(self) -> None:
        assert RegistryAuth.custom_header("X-Tenant", "acme").headers == {"X-Tenant": "acme"}

    def test_basic_auth(self) -> None:
        assert isinstance(RegistryAuth.basic_auth("u", "p").httpx_auth(), httpx.BasicAuth)


class TestRemoteSchemaRegistry:
    """Tests for RemoteSchemaRegistry."""

    def test_subject_name(self) -> None:
        assert subject_name(ProtocolVersion.V16, "BootNotificationRequest") == "ocpp-1-6-BootNotificationRequest"

    def test_url_is_required(self) -> None:
        with pytest.raises(RemoteRegistryException):
            RemoteSchemaRegistry("")

    def test_type(self, remote) -> None:
        assert remote.type() == "remote"

    def test_get_schema_fetches_latest_version(self, fake, remote, boot_schema) -> None:
        fake.put(ProtocolVersion.V16, "BootNotificationRequest", {"type": "object"})
        fake.put(ProtocolVersion.V16, "BootNotificationRequest", boot_schema)

        schema, found = remote.get_schema("1.6", "BootNotificationRequest")

        assert found
        assert schema.document == boot_schema
        assert fake.requests[-1].url.path == "/subjects/ocpp-1-6-BootNotificationRequest/versions/2/schema"

    def test_get_schema_is_cached(self, fake, remote, boot_schema) -> None:
        fake.put(ProtocolVersion.V16, "HeartbeatRequest", boot_schema)

        remote.get_schema("1.6", "HeartbeatRequest")
        request_count = len(fake.requests)
        remote.get_schema("1.6", "HeartbeatRequest")

        assert len(fake.requests) == request_count

    def test_expired_cache_refetches(self, fake, boot_schema) -> None:
        fake.put(ProtocolVersion.V16, "HeartbeatRequest", boot_schema)
        registry = RemoteSchemaRegistry(BASE_URL, cache_refresh=0, transport=httpx.MockTransport(fake.handler))

        registry.get_schema("1.6", "HeartbeatRequest")
        request_count = len(fake.requests)
        registry.get_schema("1.6", "HeartbeatRequest")

        assert len(fake.requests) == request_count * 2
        registry.close()

    def test_get_missing_subject(self, remote) -> None:
        assert remote.get_schema("1.6", "HeartbeatRequest") == (None, False)

    def test_get_invalid_version(self, fake, remote) -> None:
        assert remote.get_schema("0.9", "HeartbeatRequest") == (None, False)
        assert fake.requests == []

    def test_get_schema_never_raises(self, fake, remote) -> None:
        """Server errors are reported as not found."""
        fake.fail_with = 500

        assert remote.get_schema("1.6", "HeartbeatRequest") == (None, False)

    def test_get_schema_with_non_json_reply(self) -> None:
        """An HTML error page answered with 200 is treated as not found."""
        def handler(request):
            return httpx.Response(200, text="<html>proxy error</html>")

        with RemoteSchemaRegistry(BASE_URL, transport=httpx.MockTransport(handler)) as registry:
            assert registry.get_schema("1.6", "HeartbeatRequest") == (None, False)

            with pytest.raises(RemoteRegistryException, match="non-JSON version list"):
                registry.get_latest_version(ProtocolVersion.V16, "HeartbeatRequest")

    def test_get_schema_transport_error(self) -> None:
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with RemoteSchemaRegistry(BASE_URL, transport=httpx.MockTransport(handler)) as registry:
            assert registry.get_schema("1.6", "HeartbeatRequest") == (None, False)

    def test_get_uncompilable_schema(self, fake, remote) -> None:
        fake.subjects[subject_name(ProtocolVersion.V16, "HeartbeatRequest")] = ["{broken"]

        assert remote.get_schema("1.6", "HeartbeatRequest") == (None, False)

    def test_register_posts_schema(self, fake, remote, boot_schema) -> None:
        remote.register_schema("1.6", "BootNotificationRequest", json.dumps(boot_schema))

        request = fake.requests[-1]
        assert request.method == "POST"
        assert request.url.path == "/subjects/ocpp-1-6-BootNotificationRequest/versions"
        assert request.headers["Content-Type"] == "application/vnd.schemaregistry.v1+json"
        body = json.loads(request.content)
        assert body["schemaType"] == "JSONSCHEMA"
        assert json.loads(body["schema"]) == boot_schema

    def test_register_then_get(self, remote, boot_schema) -> None:
        remote.register_schema("1.6", "BootNotificationRequest", boot_schema)

        schema, found = remote.get_schema("1.6", "BootNotificationRequest")

        assert found
        assert schema.validate({"vendor": "x"}) == []

    def test_register_invalidates_cache(self, fake, remote, boot_schema) -> None:
        fake.put(ProtocolVersion.V16, "HeartbeatRequest", {"type": "object"})
        remote.get_schema("1.6", "HeartbeatRequest")

        remote.register_schema("1.6", "HeartbeatRequest", boot_schema)
        schema, _ = remote.get_schema("1.6", "HeartbeatRequest")

        assert schema.document == boot_schema

    def test_register_conflict(self, remote, boot_schema) -> None:
        remote.register_schema("1.6", "BootNotificationRequest", boot_schema)

        with pytest.raises(AlreadyRegisteredError):
            remote.register_schema("1.6", "BootNotificationRequest", boot_schema)

    def test_register_rejected_schema(self, fake, remote, boot_schema) -> None:
        fake.fail_with = 422

        with pytest.raises(SchemaCompileError, match="boom"):
            remote.register_schema("1.6", "BootNotificationRequest", boot_schema)

    def test_register_server_error(self, fake, remote, boot_schema) -> None:
        fake.fail_with = 503

        with pytest.raises(RemoteRegistryException) as exc_info:
            remote.register_schema("1.6", "BootNotificationRequest", boot_schema)

        assert exc_info.value.status_code == 503

    def test_register_invalid_schema_is_not_sent(self, fake, remote) -> None:
        with pytest.raises(SchemaCompileError):
            remote.register_schema("1.6", "BootNotificationRequest", b"{nope")

        assert fake.requests == []

    def test_auth_headers_are_sent(self, fake, boot_schema) -> None:
        fake.put(ProtocolVersion.V16, "HeartbeatRequest", boot_schema)
        auth = RegistryAuth.bearer_token("secret")

        with RemoteSchemaRegistry(BASE_URL, auth=auth, transport=httpx.MockTransport(fake.handler)) as registry:
            registry.get_schema("1.6", "HeartbeatRequest")

        assert all(r.headers["Authorization"] == "Bearer secret" for r in fake.requests)

    def test_basic_auth_is_sent(self, fake) -> None:
        auth = RegistryAuth.basic_auth("user", "pass")

        with RemoteSchemaRegistry(BASE_URL, auth=auth, transport=httpx.MockTransport(fake.handler)) as registry:
            registry.get_schema("1.6", "HeartbeatRequest")

        expected = "Basic " + base64.b64encode(b"user:pass").decode()
        assert fake.requests[0].headers["Authorization"] == expected

    def test_latest_version_of_missing_subject(self, remote) -> None:
        assert remote.get_latest_version(ProtocolVersion.V16, "HeartbeatRequest") is None
