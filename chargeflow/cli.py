"""
Command-line interface for chargeflow.
"""
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from chargeflow import __version__
from chargeflow.core.output import render_text
from chargeflow.core.registries import FileSchemaRegistry, RegistryAuth, RemoteSchemaRegistry
from chargeflow.core.schema_loader import register_bundled_schemas, register_schemas_from_dir
from chargeflow.core.schema_registry import SchemaRegistry
from chargeflow.core.service import ValidationService
from chargeflow.core.version import ProtocolVersion
from chargeflow.utils.config_loader import ConfigLoader
from chargeflow.utils.exceptions import ChargeflowException
from chargeflow.utils.logger import configure_logging, setup_logger
from chargeflow.utils.metrics import get_metrics_collector

DEFAULT_VERSION = "1.6"
LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _fail(message: str) -> None:
    click.echo(message, err=True)
    sys.exit(1)


def _resolve_version(settings: Dict[str, Any], version: Optional[str]) -> ProtocolVersion:
    value = version or settings.get("ocpp", {}).get("version") or DEFAULT_VERSION
    return ProtocolVersion.parse(str(value))


def _auth_from_config(auth: Dict[str, Any]) -> RegistryAuth:
    """Build registry credentials from the registry.auth config section."""
    if auth.get("username") and auth.get("password"):
        return RegistryAuth.basic_auth(auth["username"], auth["password"])
    if auth.get("bearer_token"):
        return RegistryAuth.bearer_token(auth["bearer_token"])
    if auth.get("api_key"):
        return RegistryAuth.api_key(auth["api_key"], auth.get("api_key_header"))
    if auth.get("custom_header") and auth.get("custom_value"):
        return RegistryAuth.custom_header(auth["custom_header"], auth["custom_value"])
    return RegistryAuth.none()


def _build_registry(
    settings: Dict[str, Any],
    version: ProtocolVersion,
    schemas_dir: Optional[str],
    registry_url: Optional[str]
) -> SchemaRegistry:
    """Create the registry a validation run reads schemas from.

    A remote registry is used when a URL is given on the command line or the
    configuration selects one; otherwise the bundled schemas are loaded into a
    file registry, followed by the schemas of ``schemas_dir``.
    """
    registry_config = settings.get("registry", {})
    if registry_url or registry_config.get("type") == "remote":
        return RemoteSchemaRegistry(
            registry_url or registry_config["url"],
            timeout=registry_config.get("timeout", 5.0),
            cache_refresh=registry_config.get("cache_refresh", 600.0),
            auth=_auth_from_config(registry_config.get("auth") or {})
        )

    registry = FileSchemaRegistry()
    register_bundled_schemas(registry, version)

    schemas_dir = schemas_dir or settings.get("schemas", {}).get("additional_dir")
    if schemas_dir:
        register_schemas_from_dir(registry, version, schemas_dir, overwrite=True)
    return registry


def _build_service(
    settings: Dict[str, Any],
    version: ProtocolVersion,
    schemas_dir: Optional[str],
    response_type: Optional[str],
    registry_url: Optional[str]
) -> ValidationService:
    registry = _build_registry(settings, version, schemas_dir, registry_url)
    response_type = response_type or settings.get("ocpp", {}).get("response_type")
    return ValidationService(registry, default_response_action=response_type or None)


def _validation_options(func):
    """Options shared by the validation commands."""
    options = [
        click.option("--version", "-v", "ocpp_version", default=None,
                     help="OCPP version (1.6, 2.0, 2.0.1, 2.1)"),
        click.option("--schemas", "-a", type=click.Path(exists=True, file_okay=False), default=None,
                     help="Directory with additional schemas; file names are action names"),
        click.option("--response-type", "-r", default=None,
                     help="Action assumed for responses whose request is missing"),
        click.option("--registry-url", default=None,
                     help="Read schemas from a remote schema registry instead"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", default=None, help="Path to configuration file")
@click.option("--log-level", "-l", type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None,
              help="Log level override")
@click.pass_context
def cli(ctx, config, log_level):
    """chargeflow - Offline OCPP-J message validation."""
    settings = ConfigLoader.get_default_config()
    if config:
        try:
            settings = ConfigLoader.merge_configs(settings, ConfigLoader.load(config))
        except ChargeflowException as e:
            _fail(f"Error loading configuration: {e}")

    configure_logging(settings.get("logging"), level=log_level)
    ctx.obj = settings


@cli.command("validate")
@click.argument("message")
@_validation_options
@click.pass_obj
def validate(settings, message, ocpp_version, schemas, response_type, registry_url):
    """Validate a single OCPP message."""
    try:
        version = _resolve_version(settings, ocpp_version)
        service = _build_service(settings, version, schemas, response_type, registry_url)
    except ChargeflowException as e:
        _fail(f"Error validating message: {e}")

    try:
        report = service.validate_message(message, version)
    except ChargeflowException as e:
        _fail(f"Error validating message: {e}")
    finally:
        service.close()

    click.echo(render_text(report), nl=False)
    if not report.is_valid():
        sys.exit(1)


@cli.command("validate-file")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@_validation_options
@click.option("--output", "-o", default=None, help="Report file (.txt, .csv, .json, .yaml)")
@click.option("--metrics-file", default=None, help="Write Prometheus metrics of the run to this file")
@click.pass_obj
def validate_file(settings, file, ocpp_version, schemas, response_type, registry_url, output, metrics_file):
    """Validate a file of OCPP messages, one JSON frame per line."""
    output = output or settings.get("output", {}).get("path")
    try:
        version = _resolve_version(settings, ocpp_version)
        service = _build_service(settings, version, schemas, response_type, registry_url)
    except ChargeflowException as e:
        _fail(f"Error validating file: {e}")

    try:
        report = service.validate_file(file, version, output=output)
    except ChargeflowException as e:
        _fail(f"Error validating file: {e}")
    finally:
        service.close()

    stats = report.statistics
    click.echo(f"Valid requests: {stats.valid_requests}")
    click.echo(f"Invalid requests: {stats.invalid_requests}")
    click.echo(f"Valid responses: {stats.valid_responses}")
    click.echo(f"Invalid responses: {stats.invalid_responses}")
    click.echo(f"Unparsable messages: {stats.unparsable_messages}")
    click.echo(f"Success rate: {stats.total_valid_messages_percentage():.2f}%")
    if output:
        click.echo(f"Report written to {output}")

    if metrics_file:
        Path(metrics_file).write_text(get_metrics_collector().export_prometheus_metrics(), encoding="utf-8")

    if not report.is_valid():
        sys.exit(1)


@cli.command("register")
@click.option("--url", default=None, help="Remote schema registry URL")
@click.option("--file", "schema_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Schema file to register")
@click.option("--dir", "schema_dir", type=click.Path(exists=True, file_okay=False), default=None,
              help="Directory of schemas to register; file names are action names")
@click.option("--action", default=None, help="Action of the schema file, e.g. BootNotificationRequest")
@click.option("--version", "-v", "ocpp_version", default=None, help="OCPP version of the schemas")
@click.option("--username", default=None, help="Basic authentication user")
@click.option("--password", default=None, help="Basic authentication password")
@click.option("--bearer-token", default=None, help="Bearer token")
@click.option("--api-key", default=None, help="API key")
@click.option("--api-key-header", default=None, help="Header carrying the API key (default X-API-Key)")
@click.option("--custom-header", default=None, help="Custom authentication header name")
@click.option("--custom-value", default=None, help="Custom authentication header value")
@click.option("--timeout", default=None, type=float, help="Request timeout in seconds")
@click.pass_obj
def register(settings, url, schema_file, schema_dir, action, ocpp_version, username, password,
             bearer_token, api_key, api_key_header, custom_header, custom_value, timeout):
    """Register OCPP schemas on a remote schema registry."""
    registry_config = settings.get("registry", {})
    url = url or registry_config.get("url")

    if not url:
        _fail("remote registry URL is required (use --url)")
    if not schema_file and not schema_dir:
        _fail("either --file or --dir must be specified")
    if schema_file and schema_dir:
        _fail("cannot specify both --file and --dir")
    if schema_file and not action:
        _fail("--action is required when using --file")
    if (username or password) and not (username and password):
        _fail("both --username and --password are required for basic authentication")
    if (custom_header or custom_value) and not (custom_header and custom_value):
        _fail("both --custom-header and --custom-value are required for custom header authentication")

    auth = _auth_from_config({
        "username": username,
        "password": password,
        "bearer_token": bearer_token,
        "api_key": api_key,
        "api_key_header": api_key_header,
        "custom_header": custom_header,
        "custom_value": custom_value,
    })
    if auth == RegistryAuth.none():
        auth = _auth_from_config(registry_config.get("auth") or {})

    logger = setup_logger(__name__)
    try:
        version = _resolve_version(settings, ocpp_version)
        with RemoteSchemaRegistry(url, timeout=timeout or registry_config.get("timeout", 5.0), auth=auth) as registry:
            if schema_file:
                logger.info(f"Registering {schema_file} as {action} for OCPP {version}")
                registry.register_schema(version, action, Path(schema_file).read_bytes())
                count = 1
            else:
                count = register_schemas_from_dir(registry, version, schema_dir, overwrite=False)
    except (ChargeflowException, OSError) as e:
        _fail(f"Error registering schemas: {e}")

    click.echo(f"Registered {count} schema(s) on {url}")


@cli.command("list-schemas")
@click.option("--version", "-v", "ocpp_version", default=None, help="OCPP version")
@click.pass_obj
def list_schemas(settings, ocpp_version):
    """List the schemas bundled for an OCPP version."""
    try:
        version = _resolve_version(settings, ocpp_version)
        registry = FileSchemaRegistry()
        register_bundled_schemas(registry, version)
    except ChargeflowException as e:
        _fail(f"Error listing schemas: {e}")

    actions = registry.actions(version)
    if not actions:
        click.echo(f"No bundled schemas for OCPP {version}")
        return

    click.echo(f"Bundled schemas for OCPP {version}:")
    for action in actions:
        click.echo(f"  - {action}")


@cli.command("validate-config")
@click.argument("config_file")
def validate_config(config_file):
    """Validate a configuration file."""
    click.echo(f"Validating configuration file: {config_file}")
    try:
        ConfigLoader.load(config_file)
    except ChargeflowException as e:
        _fail(f"Error validating configuration: {e}")

    click.echo("Configuration is valid.")


@cli.command("init-config")
@click.option("--output", "-o", default="config/chargeflow.yaml", help="Output file for the configuration template")
@click.option("--version", "-v", "ocpp_version", help="OCPP version to put in the template")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init_config(output, ocpp_version, force):
    """Create a configuration template."""
    if Path(output).exists() and not force:
        _fail(f"Configuration file already exists: {output} (use --force to overwrite)")

    config = ConfigLoader.get_default_config()
    if ocpp_version:
        try:
            config["ocpp"]["version"] = ProtocolVersion.parse(ocpp_version).value
        except ChargeflowException as e:
            _fail(f"Error creating configuration: {e}")

    try:
        ConfigLoader.save_config(config, output)
    except OSError as e:
        _fail(f"Error creating configuration: {e}")

    click.echo(f"Created configuration template: {output}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
