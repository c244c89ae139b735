"""Unit tests for report writers."""

import csv
import json

import pytest
import yaml

from chargeflow.core.output import (
    CsvStrategy,
    JsonStrategy,
    TxtStrategy,
    YamlStrategy,
    output_strategy_factory,
    render_text,
    write_report,
)
from chargeflow.core.report import Report, Statistics
from chargeflow.utils.exceptions import ErrorCodes, ReportException


@pytest.fixture
def report() -> Report:
    return Report(
        invalid_messages={"1234": {"request": ["$: 'chargePointVendor' is a required property"]}},
        non_parsable_messages={"line 3": ["Message is not a valid OCPP message"]},
        statistics=Statistics(invalid_requests=1, valid_responses=1, unparsable_messages=1),
    )


class TestFactory:
    @pytest.mark.parametrize("name,strategy", [
        ("report.txt", TxtStrategy),
        ("report.csv", CsvStrategy),
        ("report.json", JsonStrategy),
        ("report.yaml", YamlStrategy),
        ("report.yml", YamlStrategy),
        ("REPORT.JSON", JsonStrategy),
    ])
    def test_extension_picks_strategy(self, name, strategy) -> None:
        assert isinstance(output_strategy_factory(name), strategy)

    @pytest.mark.parametrize("name", ["report.xml", "report"])
    def test_unsupported_extension(self, name) -> None:
        with pytest.raises(ReportException) as exc_info:
            output_strategy_factory(name)
        assert exc_info.value.error_code == ErrorCodes.REPORT_UNSUPPORTED_FORMAT


class TestWriters:
    """Each writer produces its format on disk."""

    def test_json(self, tmp_path, report) -> None:
        path = tmp_path / "report.json"
        write_report(path, report)

        data = json.loads(path.read_text())
        assert data["invalid_messages"]["1234"]["request"][0].startswith("$: ")
        assert data["statistics"]["unparsable_messages"] == 1

    def test_yaml(self, tmp_path, report) -> None:
        path = tmp_path / "report.yaml"
        write_report(path, report)

        data = yaml.safe_load(path.read_text())
        assert data["non_parsable_messages"] == {"line 3": ["Message is not a valid OCPP message"]}

    def test_csv(self, tmp_path, report) -> None:
        path = tmp_path / "report.csv"
        write_report(path, report)

        with open(path, newline="") as f:
            rows = list(csv.reader(f))
        assert rows[0] == ["message_id", "type", "errors"]
        assert ["1234", "request", "$: 'chargePointVendor' is a required property"] in rows
        assert ["line 3", "non_parsable", "Message is not a valid OCPP message"] in rows

    def test_txt(self, tmp_path, report) -> None:
        path = tmp_path / "report.txt"
        write_report(path, report)

        assert path.read_text() == render_text(report)

    def test_unwritable_path(self, tmp_path, report) -> None:
        with pytest.raises(ReportException) as exc_info:
            write_report(tmp_path / "missing" / "report.json", report)
        assert exc_info.value.error_code == ErrorCodes.REPORT_WRITE_FAILED


class TestRenderText:
    def test_lists_findings(self, report) -> None:
        text = render_text(report)

        assert "Invalid requests: 1" in text
        assert "Success rate: 50.00%" in text
        assert "Message 1234:" in text
        assert "    - $: 'chargePointVendor' is a required property" in text
        assert "Non parsable messages:" in text
        assert "  line 3:" in text

    def test_all_valid(self) -> None:
        text = render_text(Report(statistics=Statistics(valid_requests=2)))

        assert "All messages are valid!" in text
        assert "Success rate: 100.00%" in text
