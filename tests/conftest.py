"""Shared fixtures for chargeflow tests."""

import json

import pytest

from chargeflow.core.registries import FileSchemaRegistry
from chargeflow.core.schema_loader import register_bundled_schemas
from chargeflow.utils.metrics import MetricsCollector, reset_global_metrics

BOOT_REQUEST = {
    "chargePointVendor": "VendorX",
    "chargePointModel": "ModelY",
}

BOOT_RESPONSE = {
    "status": "Accepted",
    "currentTime": "2024-01-01T00:00:00Z",
    "interval": 300,
}


def frame(*elements) -> str:
    """Encode a frame the way it appears in a capture."""
    return json.dumps(list(elements))


@pytest.fixture
def boot_schema() -> dict:
    """A small draft-04 schema requiring a vendor string."""
    return {
        "$schema": "http://json-schema.org/draft-04/schema#",
        "type": "object",
        "properties": {
            "vendor": {"type": "string", "maxLength": 10},
        },
        "required": ["vendor"],
        "additionalProperties": False,
    }


@pytest.fixture
def registry() -> FileSchemaRegistry:
    """File registry holding the bundled OCPP 1.6 schemas."""
    file_registry = FileSchemaRegistry()
    register_bundled_schemas(file_registry, "1.6")
    return file_registry


@pytest.fixture
def metrics() -> MetricsCollector:
    """Collector isolated from the process-wide one."""
    return MetricsCollector()


@pytest.fixture(autouse=True)
def fresh_global_metrics():
    """Give every test its own global metrics collector."""
    reset_global_metrics()
    yield
    reset_global_metrics()
