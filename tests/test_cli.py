"""Tests for the chargeflow command-line interface."""

import json

import httpx
import pytest
import yaml
from click.testing import CliRunner

from chargeflow import __version__
from chargeflow.cli import cli
from chargeflow.core.registries import RemoteSchemaRegistry

from conftest import BOOT_REQUEST, BOOT_RESPONSE, frame


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def capture(tmp_path):
    path = tmp_path / "capture.log"
    path.write_text("\n".join([
        frame(2, "1", "BootNotification", BOOT_REQUEST),
        frame(3, "1", BOOT_RESPONSE),
    ]) + "\n")
    return path


class TestValidate:
    """Tests for the validate command."""

    def test_valid_message(self, runner) -> None:
        result = runner.invoke(cli, ["validate", frame(2, "1", "BootNotification", BOOT_REQUEST)])

        assert result.exit_code == 0
        assert "All messages are valid!" in result.output

    def test_invalid_message(self, runner) -> None:
        result = runner.invoke(cli, ["validate", "--version", "1.6", frame(2, "1", "BootNotification", {})])

        assert result.exit_code == 1
        assert "Message 1:" in result.output
        assert "'chargePointVendor' is a required property" in result.output

    def test_not_a_frame(self, runner) -> None:
        result = runner.invoke(cli, ["validate", "hello"])

        assert result.exit_code == 1
        assert "Non parsable messages:" in result.output

    def test_unsupported_version(self, runner) -> None:
        result = runner.invoke(cli, ["validate", "-v", "9.9", frame(2, "1", "Heartbeat", {})])

        assert result.exit_code == 1
        assert "unsupported OCPP version: 9.9" in result.output

    def test_response_type_option(self, runner) -> None:
        message = frame(3, "1", {"currentTime": "2024-01-01T00:00:00Z"})

        without = runner.invoke(cli, ["validate", message])
        with_type = runner.invoke(cli, ["validate", "--response-type", "Heartbeat", message])

        assert without.exit_code == 1
        assert "unable to determine response type" in without.output
        assert with_type.exit_code == 0

    def test_additional_schemas(self, runner, tmp_path) -> None:
        schemas = tmp_path / "schemas"
        schemas.mkdir()
        (schemas / "DataTransferRequest.json").write_text(json.dumps({
            "type": "object",
            "required": ["vendorId"],
        }))

        result = runner.invoke(cli, [
            "validate", "--schemas", str(schemas), frame(2, "1", "DataTransfer", {"vendorId": "x"})
        ])

        assert result.exit_code == 0

    def test_config_file_sets_version(self, runner, tmp_path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text(yaml.safe_dump({"ocpp": {"version": "2.0.1"}}))
        message = frame(2, "1", "BootNotification", {
            "reason": "PowerUp",
            "chargingStation": {"model": "M", "vendorName": "V"},
        })

        result = runner.invoke(cli, ["--config", str(config), "validate", message])

        assert result.exit_code == 0

    def test_remote_registry_is_closed(self, runner, monkeypatch) -> None:
        closed = []

        class TrackedRegistry(RemoteSchemaRegistry):
            def close(self) -> None:
                closed.append(True)
                super().close()

        def build_registry(settings, version, schemas_dir, registry_url):
            transport = httpx.MockTransport(lambda request: httpx.Response(404, json={}))
            return TrackedRegistry(registry_url, transport=transport)

        monkeypatch.setattr("chargeflow.cli._build_registry", build_registry)

        result = runner.invoke(cli, [
            "validate", "--registry-url", "http://registry.test", frame(2, "1", "Heartbeat", {})
        ])

        assert result.exit_code == 1
        assert "no schema found for action HeartbeatRequest" in result.output
        assert closed == [True]

    def test_bad_config_file(self, runner, tmp_path) -> None:
        result = runner.invoke(cli, ["--config", str(tmp_path / "missing.yaml"), "validate", "x"])

        assert result.exit_code == 1
        assert "Error loading configuration" in result.output


class TestValidateFile:
    def test_summary_and_report(self, runner, capture, tmp_path) -> None:
        output = tmp_path / "report.yaml"

        result = runner.invoke(cli, ["validate-file", str(capture), "-o", str(output)])

        assert result.exit_code == 0
        assert "Valid requests: 1" in result.output
        assert "Valid responses: 1" in result.output
        assert "Success rate: 100.00%" in result.output
        assert yaml.safe_load(output.read_text())["statistics"]["valid_requests"] == 1

    def test_invalid_capture(self, runner, tmp_path) -> None:
        capture = tmp_path / "bad.log"
        capture.write_text("garbage\n")

        result = runner.invoke(cli, ["validate-file", str(capture)])

        assert result.exit_code == 1
        assert "Unparsable messages: 1" in result.output

    def test_unsupported_output(self, runner, capture, tmp_path) -> None:
        result = runner.invoke(cli, ["validate-file", str(capture), "-o", str(tmp_path / "report.xml")])

        assert result.exit_code == 1
        assert "unsupported output extension" in result.output

    def test_metrics_file(self, runner, capture, tmp_path) -> None:
        metrics_file = tmp_path / "metrics.prom"

        result = runner.invoke(cli, ["validate-file", str(capture), "--metrics-file", str(metrics_file)])

        assert result.exit_code == 0
        assert 'chargeflow_frames_total{outcome="decoded"} 2.0' in metrics_file.read_text()


class TestRegister:
    """Argument checks of the register command."""

    @pytest.mark.parametrize("args,message", [
        (["--file", "{schema}", "--action", "HeartbeatRequest"], "remote registry URL is required"),
        (["--url", "http://r"], "either --file or --dir must be specified"),
        (["--url", "http://r", "--file", "{schema}", "--dir", "{dir}"], "cannot specify both --file and --dir"),
        (["--url", "http://r", "--file", "{schema}"], "--action is required when using --file"),
        (["--url", "http://r", "--dir", "{dir}", "--username", "u"], "both --username and --password"),
        (["--url", "http://r", "--dir", "{dir}", "--custom-header", "X-A"], "both --custom-header and --custom-value"),
    ])
    def test_argument_errors(self, runner, tmp_path, boot_schema, args, message) -> None:
        schema = tmp_path / "HeartbeatRequest.json"
        schema.write_text(json.dumps(boot_schema))
        args = [a.format(schema=schema, dir=tmp_path) for a in args]

        result = runner.invoke(cli, ["register"] + args)

        assert result.exit_code == 1
        assert message in result.output

    def test_unreachable_registry(self, runner, tmp_path, boot_schema) -> None:
        schema = tmp_path / "HeartbeatRequest.json"
        schema.write_text(json.dumps(boot_schema))

        result = runner.invoke(cli, [
            "register", "--url", "http://127.0.0.1:9", "--timeout", "0.5",
            "--file", str(schema), "--action", "HeartbeatRequest",
        ])

        assert result.exit_code == 1
        assert "Error registering schemas" in result.output


class TestMiscCommands:
    def test_list_schemas(self, runner) -> None:
        result = runner.invoke(cli, ["list-schemas", "--version", "1.6"])

        assert result.exit_code == 0
        assert "  - BootNotificationRequest" in result.output

    def test_list_schemas_without_bundle(self, runner) -> None:
        result = runner.invoke(cli, ["list-schemas", "-v", "2.1"])

        assert result.exit_code == 0
        assert "No bundled schemas for OCPP 2.1" in result.output

    def test_validate_config(self, runner, tmp_path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("ocpp:\n  version: '1.6'\n")

        result = runner.invoke(cli, ["validate-config", str(config)])

        assert result.exit_code == 0
        assert "Validating configuration file" in result.output
        assert "Configuration is valid." in result.output

    def test_validate_invalid_config(self, runner, tmp_path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("logging:\n  level: LOUD\n")

        result = runner.invoke(cli, ["validate-config", str(config)])

        assert result.exit_code == 1
        assert "Invalid log level" in result.output

    def test_init_config(self, runner, tmp_path) -> None:
        output = tmp_path / "conf" / "chargeflow.yaml"

        result = runner.invoke(cli, ["init-config", "-o", str(output), "-v", "2.0.1"])

        assert result.exit_code == 0
        assert "Created configuration template" in result.output
        assert yaml.safe_load(output.read_text())["ocpp"]["version"] == "2.0"
        assert runner.invoke(cli, ["validate-config", str(output)]).exit_code == 0

    def test_init_config_keeps_existing_file(self, runner, tmp_path) -> None:
        output = tmp_path / "chargeflow.yaml"
        output.write_text("ocpp: {}\n")

        result = runner.invoke(cli, ["init-config", "-o", str(output)])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert output.read_text() == "ocpp: {}\n"

        assert runner.invoke(cli, ["init-config", "-o", str(output), "--force"]).exit_code == 0
        assert yaml.safe_load(output.read_text())["ocpp"]["version"] == "1.6"

    def test_version(self, runner) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output
