"""
In-process schema registry backed by a version -> action -> schema map.
"""
from typing import Dict, List, Optional, Tuple, Union

from chargeflow.core.schema_registry import (
    CompiledSchema,
    RawSchema,
    SchemaCompiler,
    SchemaRegistry,
    check_action_suffix,
)
from chargeflow.core.version import ProtocolVersion, is_valid_protocol_version
from chargeflow.utils.decorators import ReadWriteLock, read_locked, write_locked
from chargeflow.utils.exceptions import AlreadyRegisteredError
from chargeflow.utils.logger import setup_logger


class FileSchemaRegistry(SchemaRegistry):
    """Schema registry holding compiled schemas in memory.

    Lookups share a read lock; registrations take the write lock, so a
    lookup never observes a half-registered schema.
    """

    TYPE = "file"

    def __init__(self, overwrite: bool = False, compiler: Optional[SchemaCompiler] = None):
        """Initialize the registry.

        Args:
            overwrite: Default overwrite behaviour for register_schema
            compiler: Schema compiler; a fresh one is created when omitted
        """
        self.logger = setup_logger(__name__)
        self.overwrite = overwrite
        self.compiler = compiler or SchemaCompiler()
        self._schemas: Dict[ProtocolVersion, Dict[str, CompiledSchema]] = {}
        self._rw_lock = ReadWriteLock()

    def register_schema(
        self,
        version: Union[str, ProtocolVersion],
        action: str,
        raw_schema: RawSchema,
        overwrite: Optional[bool] = None
    ) -> None:
        version = ProtocolVersion.parse(version)
        check_action_suffix(action)

        # Compile before taking the lock so lookups are not held up
        compiled = self.compiler.compile(raw_schema)

        if overwrite is None:
            overwrite = self.overwrite
        self._store(version, action, compiled, overwrite)

    @write_locked()
    def _store(self, version: ProtocolVersion, action: str, compiled: CompiledSchema, overwrite: bool) -> None:
        schemas = self._schemas.setdefault(version, {})
        if action in schemas and not overwrite:
            raise AlreadyRegisteredError(version.value, action)

        schemas[action] = compiled
        self.logger.debug(f"Registered schema {action} for OCPP {version}")

    def get_schema(
        self,
        version: Union[str, ProtocolVersion],
        action: str
    ) -> Tuple[Optional[CompiledSchema], bool]:
        if not is_valid_protocol_version(version):
            return None, False
        return self._lookup(ProtocolVersion.parse(version), action)

    @read_locked()
    def _lookup(self, version: ProtocolVersion, action: str) -> Tuple[Optional[CompiledSchema], bool]:
        schema = self._schemas.get(version, {}).get(action)
        return schema, schema is not None

    @read_locked()
    def actions(self, version: Union[str, ProtocolVersion]) -> List[str]:
        """Return the sorted actions registered for a version."""
        if not is_valid_protocol_version(version):
            return []
        return sorted(self._schemas.get(ProtocolVersion.parse(version), {}))

    @read_locked()
    def versions(self) -> List[ProtocolVersion]:
        return sorted(version for version, schemas in self._schemas.items() if schemas)

    def type(self) -> str:
        return self.TYPE
