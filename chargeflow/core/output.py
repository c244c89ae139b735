"""
Report writers. The output format is chosen from the file extension.
"""
import csv
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Type, Union

import yaml

from chargeflow.core.report import Report
from chargeflow.utils.exceptions import ErrorCodes, ReportException
from chargeflow.utils.logger import setup_logger


class OutputStrategy(ABC):
    """Writes a report to a file in one format."""

    @abstractmethod
    def write(self, path: Union[str, Path], report: Report) -> None:
        """Write the report.

        Args:
            path: Destination file
            report: Report to write
        """


class TxtStrategy(OutputStrategy):
    """Human-readable summary followed by the errors of every message."""

    def write(self, path: Union[str, Path], report: Report) -> None:
        Path(path).write_text(render_text(report), encoding='utf-8')


class CsvStrategy(OutputStrategy):
    """One row per invalid slot: message_id, type, errors joined by " | "."""

    def write(self, path: Union[str, Path], report: Report) -> None:
        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(["message_id", "type", "errors"])

            for message_id, slots in report.invalid_messages.items():
                for slot, errors in slots.items():
                    writer.writerow([message_id, slot, " | ".join(errors)])

            for message_id, errors in report.non_parsable_messages.items():
                writer.writerow([message_id, "non_parsable", " | ".join(errors)])


class JsonStrategy(OutputStrategy):
    def write(self, path: Union[str, Path], report: Report) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(report.to_dict(), f, indent=2)


class YamlStrategy(OutputStrategy):
    def write(self, path: Union[str, Path], report: Report) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(report.to_dict(), f, default_flow_style=False, sort_keys=False)


_STRATEGIES: Dict[str, Type[OutputStrategy]] = {
    ".txt": TxtStrategy,
    ".csv": CsvStrategy,
    ".json": JsonStrategy,
    ".yaml": YamlStrategy,
    ".yml": YamlStrategy,
}


def output_strategy_factory(path: Union[str, Path]) -> OutputStrategy:
    """Pick the writer for a destination file.

    Args:
        path: Destination file

    Returns:
        OutputStrategy matching the file extension

    Raises:
        ReportException: If the extension is not supported
    """
    extension = Path(path).suffix.lower()
    strategy = _STRATEGIES.get(extension)
    if strategy is None:
        raise ReportException(
            f"unsupported output extension: {extension or '(none)'}",
            path=str(path),
            error_code=ErrorCodes.REPORT_UNSUPPORTED_FORMAT
        )
    return strategy()


def write_report(path: Union[str, Path], report: Report) -> None:
    """Write a report in the format implied by the path's extension.

    Raises:
        ReportException: Unsupported extension or the file cannot be written
    """
    strategy = output_strategy_factory(path)
    try:
        strategy.write(path, report)
    except OSError as e:
        raise ReportException(
            f"failed to write report: {e}",
            path=str(path),
            error_code=ErrorCodes.REPORT_WRITE_FAILED,
            cause=e
        ) from e
    setup_logger(__name__).info(f"Report written to {path}")


def render_text(report: Report) -> str:
    """Render a report as plain text."""
    stats = report.statistics
    lines = [
        f"Valid requests: {stats.valid_requests}",
        f"Invalid requests: {stats.invalid_requests}",
        f"Valid responses: {stats.valid_responses}",
        f"Invalid responses: {stats.invalid_responses}",
        f"Unparsable messages: {stats.unparsable_messages}",
        f"Success rate: {stats.total_valid_messages_percentage():.2f}%",
        "",
    ]

    if report.is_valid():
        lines.append("All messages are valid!")
        return "\n".join(lines) + "\n"

    for message_id, slots in report.invalid_messages.items():
        lines.append(f"Message {message_id}:")
        for slot, errors in slots.items():
            lines.append(f"  {slot}:")
            lines.extend(f"    - {error}" for error in errors)
        lines.append("")

    if report.non_parsable_messages:
        lines.append("Non parsable messages:")
        for message_id, errors in report.non_parsable_messages.items():
            lines.append(f"  {message_id}:")
            lines.extend(f"    - {error}" for error in errors)
            lines.append("")

    return "\n".join(lines) + "\n"
