"""
Schema registry implementations.

- FileSchemaRegistry: In-process registry holding compiled schemas in memory
- RemoteSchemaRegistry: Registry backed by a remote HTTP schema registry
"""

from .file import FileSchemaRegistry
from .remote import RemoteSchemaRegistry, RegistryAuth

__all__ = [
    "FileSchemaRegistry",
    "RemoteSchemaRegistry",
    "RegistryAuth"
]
