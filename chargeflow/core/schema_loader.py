"""
Loading schema files into a registry, from the bundled set or from a directory.
"""
from importlib import resources
from pathlib import Path
from typing import Dict, Iterable, Tuple, Union

from chargeflow.core.schema_registry import SchemaRegistry
from chargeflow.core.version import ProtocolVersion
from chargeflow.utils.decorators import timer
from chargeflow.utils.exceptions import ChargeflowException, format_exception_chain
from chargeflow.utils.logger import setup_logger

SCHEMA_PACKAGE = "chargeflow.schemas"

# Bundled schema directory per protocol version
BUNDLES: Dict[ProtocolVersion, str] = {
    ProtocolVersion.V16: "ocpp_16",
    ProtocolVersion.V20: "ocpp_201",
}


def bundled_schemas(version: Union[str, ProtocolVersion]) -> Iterable[Tuple[str, bytes]]:
    """Yield (action, raw schema) for every schema shipped for a version.

    Versions without a bundle yield nothing.
    """
    bundle = BUNDLES.get(ProtocolVersion.parse(version))
    if bundle is None:
        return

    directory = resources.files(SCHEMA_PACKAGE).joinpath(bundle)
    for entry in sorted(directory.iterdir(), key=lambda e: e.name):
        if entry.name.lower().endswith(".json"):
            yield entry.name[:-len(".json")], entry.read_bytes()


@timer("bundled_schema_load")
def register_bundled_schemas(
    registry: SchemaRegistry,
    version: Union[str, ProtocolVersion],
    overwrite: bool = True
) -> int:
    """Register the schemas shipped with chargeflow for a version.

    Args:
        registry: Target registry
        version: Protocol version
        overwrite: Replace schemas already in the registry

    Returns:
        Number of schemas registered
    """
    logger = setup_logger(__name__)
    count = 0
    for action, raw_schema in bundled_schemas(version):
        registry.register_schema(version, action, raw_schema, overwrite=overwrite)
        count += 1

    logger.debug(f"Registered {count} bundled schemas for OCPP {version}")
    return count


def register_schemas_from_dir(
    registry: SchemaRegistry,
    version: Union[str, ProtocolVersion],
    directory: Union[str, Path],
    overwrite: bool = True
) -> int:
    """Register every ``*.json`` file of a directory; the file stem is the action.

    Files that fail to register are logged and skipped.

    Args:
        registry: Target registry
        version: Protocol version
        directory: Directory holding schema files
        overwrite: Replace schemas already in the registry

    Returns:
        Number of schemas registered

    Raises:
        ChargeflowException: If the directory does not exist, or if any file
            failed to register (after the remaining files were processed)
    """
    logger = setup_logger(__name__)
    path = Path(directory)
    if not path.is_dir():
        raise ChargeflowException(f"schema directory not found: {directory}")

    registered = 0
    failed = 0
    for schema_file in sorted(path.iterdir()):
        if not schema_file.is_file() or schema_file.suffix.lower() != ".json":
            logger.debug(f"Skipping non-JSON file {schema_file.name}")
            continue

        try:
            registry.register_schema(version, schema_file.stem, schema_file.read_bytes(), overwrite=overwrite)
        except (ChargeflowException, OSError) as e:
            logger.error(f"Failed to register schema {schema_file}: {e}")
            logger.debug(format_exception_chain(e))
            failed += 1
            continue
        registered += 1

    if failed:
        raise ChargeflowException(
            f"failed to register {failed} schema(s), {registered} succeeded",
            context={'directory': str(path)}
        )

    logger.info(f"Registered {registered} schemas from {path} for OCPP {version}")
    return registered
