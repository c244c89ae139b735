"""
Validation service: decodes a batch of frames, validates every message and
reduces the outcome into a report.
"""
from pathlib import Path
from typing import Iterable, Optional, Union

from chargeflow.core.output import write_report
from chargeflow.core.parser import FrameParser
from chargeflow.core.report import Report, ResultAggregator, Statistics
from chargeflow.core.result import Result
from chargeflow.core.schema_registry import SchemaRegistry
from chargeflow.core.validator import MessageValidator, ValidationResult
from chargeflow.core.version import ProtocolVersion
from chargeflow.utils.exceptions import ChargeflowException, SchemaNotFoundError
from chargeflow.utils.logger import StructuredLogger, setup_logger
from chargeflow.utils.metrics import MetricsCollector, get_metrics_collector


class ValidationService:
    """Runs the decode, validate and aggregate pipeline over captured frames."""

    def __init__(
        self,
        registry: SchemaRegistry,
        default_response_action: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        """Initialize the validation service.

        Args:
            registry: Schema registry used for validation
            default_response_action: Action assumed for responses without a request
            metrics: Metrics collector, the global one when omitted
        """
        self.logger = setup_logger(__name__)
        self.events = StructuredLogger(__name__)
        self.registry = registry
        self.default_response_action = default_response_action
        self.metrics = metrics or get_metrics_collector()
        self.validator = MessageValidator(registry)
        self.aggregator = ResultAggregator()

    def parse_and_validate(self, version: Union[str, ProtocolVersion], lines: Iterable[str]) -> Report:
        """Validate a batch of frames.

        Args:
            version: Protocol version of the capture
            lines: One JSON frame per line

        Returns:
            Report for the batch

        Raises:
            InvalidVersionError: If the version is not supported
        """
        version = ProtocolVersion.parse(version)
        self.aggregator.reset()

        with self.metrics.timer('validation'):
            parser = FrameParser(default_response_action=self.default_response_action)
            exchanges, non_parsable = parser.parse(lines)

            for key, result in non_parsable.items():
                self.aggregator.add_non_parsable_message(key, result)
            self.metrics.increment_counter('frames_total', len(non_parsable), {'outcome': 'non_parsable'})

            for message_id, exchange in exchanges.items():
                if not exchange.request.is_empty():
                    self._process_slot(version, message_id, True, exchange.request)

                response = exchange.response_result()
                if not response.is_empty():
                    self._process_slot(version, message_id, False, response)

            report = self.aggregator.create_report()

        stats = report.statistics
        self.events.info(
            "Validation run finished",
            version=version,
            messages=stats.get_total(),
            valid=stats.valid_requests + stats.valid_responses,
            invalid=stats.invalid_requests + stats.invalid_responses,
            non_parsable=stats.unparsable_messages
        )
        return report

    def validate_message(self, line: str, version: Union[str, ProtocolVersion]) -> Report:
        """Validate a single raw frame."""
        return self.parse_and_validate(version, [line])

    def validate_file(
        self,
        path: Union[str, Path],
        version: Union[str, ProtocolVersion],
        output: Optional[Union[str, Path]] = None
    ) -> Report:
        """Validate a capture file with one frame per line.

        Args:
            path: Capture file
            version: Protocol version of the capture
            output: Optional report destination; its extension picks the format.
                When omitted the findings are logged.

        Returns:
            Report for the file

        Raises:
            ChargeflowException: If the file cannot be read
            ReportException: If the report cannot be written
        """
        try:
            content = Path(path).read_text(encoding='utf-8')
        except OSError as e:
            raise ChargeflowException(f"failed to read file {path}: {e}", cause=e) from e

        report = self.parse_and_validate(version, content.split("\n"))

        if output:
            write_report(output, report)
        else:
            self.log_report(report)
        return report

    def get_statistics(self) -> Statistics:
        return self.aggregator.get_statistics()

    def close(self) -> None:
        self.registry.close()

    def log_report(self, report: Report) -> None:
        """Log every finding of a report."""
        if report.is_valid():
            self.logger.info("All messages are valid")
            return

        for message_id, slots in report.invalid_messages.items():
            for slot, errors in slots.items():
                self.logger.warning(f"Invalid {slot} {message_id}: {'; '.join(errors)}")

        for message_id, errors in report.non_parsable_messages.items():
            self.logger.warning(f"Non-parsable {message_id}: {'; '.join(errors)}")

    def _process_slot(self, version: ProtocolVersion, message_id: str, is_request: bool, parsed: Result) -> None:
        self.aggregator.add_parser_result(message_id, is_request, parsed)
        kind = 'request' if is_request else 'response'

        if parsed.message is None:
            self.metrics.increment_counter('frames_total', labels={'outcome': 'rejected'})
            return
        self.metrics.increment_counter('frames_total', labels={'outcome': 'decoded'})

        validation = self._validate(version, parsed)
        self.aggregator.add_validation_results(message_id, is_request, validation)
        self.metrics.increment_counter(
            'messages_validated_total',
            labels={'kind': kind, 'outcome': 'valid' if validation.is_valid else 'invalid'}
        )

    def _validate(self, version: ProtocolVersion, parsed: Result) -> ValidationResult:
        try:
            result = self.validator.validate_message(version, parsed.message)
        except SchemaNotFoundError as e:
            self.logger.warning(f"Message {parsed.message.unique_id}: {e.message}")
            self.metrics.increment_counter(
                'schema_misses_total',
                labels={'registry': self.registry.type()}
            )
            result = ValidationResult()
            result.add_error(e.message)
        return result
