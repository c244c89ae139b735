"""
Result aggregation: reduces per-message outcomes into a report with statistics.
"""
import copy
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from chargeflow.core.result import Result
from chargeflow.core.validator import ValidationResult
from chargeflow.utils.logger import setup_logger

REQUEST_KEY = "request"
RESPONSE_KEY = "response"


def result_key(is_request: bool) -> str:
    return REQUEST_KEY if is_request else RESPONSE_KEY


def _percentage(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return part / total * 100


@dataclass(frozen=True)
class Statistics:
    """Counts of valid and invalid messages in a run."""
    valid_requests: int = 0
    invalid_requests: int = 0
    valid_responses: int = 0
    invalid_responses: int = 0
    unparsable_messages: int = 0

    def get_total(self) -> int:
        """Number of parsed messages; non-parsable lines are not included."""
        return self.get_total_requests() + self.get_total_responses()

    def get_total_requests(self) -> int:
        return self.valid_requests + self.invalid_requests

    def get_total_responses(self) -> int:
        return self.valid_responses + self.invalid_responses

    def valid_request_percentage(self) -> float:
        return _percentage(self.valid_requests, self.get_total_requests())

    def invalid_request_percentage(self) -> float:
        return _percentage(self.invalid_requests, self.get_total_requests())

    def valid_response_percentage(self) -> float:
        return _percentage(self.valid_responses, self.get_total_responses())

    def invalid_response_percentage(self) -> float:
        return _percentage(self.invalid_responses, self.get_total_responses())

    def total_valid_messages_percentage(self) -> float:
        return _percentage(self.valid_requests + self.valid_responses, self.get_total())

    def total_invalid_messages_percentage(self) -> float:
        return _percentage(self.invalid_requests + self.invalid_responses, self.get_total())

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class Report:
    """Snapshot of a validation run.

    Attributes:
        invalid_messages: exchange id -> "request"/"response" -> errors
        non_parsable_messages: line key or correlation id -> errors
        statistics: Counts for the run
    """
    invalid_messages: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)
    non_parsable_messages: Dict[str, List[str]] = field(default_factory=dict)
    statistics: Statistics = field(default_factory=Statistics)

    def is_valid(self) -> bool:
        return not self.invalid_messages and not self.non_parsable_messages

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invalid_messages": copy.deepcopy(self.invalid_messages),
            "non_parsable_messages": copy.deepcopy(self.non_parsable_messages),
            "statistics": self.statistics.to_dict(),
        }


@dataclass
class _Entry:
    parse: Optional[Result] = None
    validation: Optional[ValidationResult] = None

    def is_valid(self) -> bool:
        parse_valid = self.parse is None or self.parse.is_valid
        validation_valid = self.validation is None or self.validation.is_valid
        return parse_valid and validation_valid

    def errors(self) -> List[str]:
        """Parse errors followed by validation errors, first occurrence kept."""
        combined = []
        if self.parse is not None:
            combined.extend(self.parse.errors)
        if self.validation is not None:
            combined.extend(self.validation.errors)
        return list(dict.fromkeys(combined))


class ResultAggregator:
    """Collects parse and validation outcomes and builds a report once."""

    def __init__(self):
        self.logger = setup_logger(__name__)
        self._results: Dict[str, Dict[str, _Entry]] = {}
        self._non_parsable: Dict[str, Result] = {}
        self._report: Optional[Report] = None

    def add_parser_result(self, message_id: str, is_request: bool, result: Result) -> None:
        """Record the decode outcome of a request or response.

        Args:
            message_id: Correlation id of the exchange
            is_request: True for the request slot, False for the response slot
            result: Decode outcome
        """
        if not message_id:
            return
        self._entry(message_id, is_request).parse = result

    def add_validation_results(self, message_id: str, is_request: bool, result: ValidationResult) -> None:
        """Record the validation outcome of a request or response.

        Args:
            message_id: Correlation id of the exchange
            is_request: True for the request slot, False for the response slot
            result: Validation outcome
        """
        if not message_id:
            return
        self._entry(message_id, is_request).validation = result

    def add_non_parsable_message(self, message_id: str, result: Result) -> None:
        if not message_id:
            return
        self._non_parsable[message_id] = result

    def create_report(self) -> Report:
        """Build the report. Later calls return the same snapshot.

        Returns:
            Report of every invalid slot and non-parsable entry
        """
        if self._report is not None:
            return self._report

        invalid_messages: Dict[str, Dict[str, List[str]]] = {}
        for message_id, entries in self._results.items():
            for key, entry in entries.items():
                if entry.is_valid():
                    continue
                invalid_messages.setdefault(message_id, {})[key] = entry.errors()

        non_parsable = {
            message_id: list(dict.fromkeys(result.errors))
            for message_id, result in self._non_parsable.items()
        }

        self._report = Report(
            invalid_messages=invalid_messages,
            non_parsable_messages=non_parsable,
            statistics=self._compute_statistics()
        )
        self.logger.debug(
            f"Report created: {len(invalid_messages)} invalid exchanges, "
            f"{len(non_parsable)} non-parsable entries"
        )
        return self._report

    def get_statistics(self) -> Statistics:
        """Return the statistics of the report, or live counts if none was created."""
        if self._report is not None:
            return self._report.statistics
        return self._compute_statistics()

    def reset(self) -> None:
        self._results = {}
        self._non_parsable = {}
        self._report = None

    def _entry(self, message_id: str, is_request: bool) -> _Entry:
        return self._results.setdefault(message_id, {}).setdefault(result_key(is_request), _Entry())

    def _compute_statistics(self) -> Statistics:
        counts = {
            "valid_requests": 0,
            "invalid_requests": 0,
            "valid_responses": 0,
            "invalid_responses": 0,
        }
        for entries in self._results.values():
            for key, entry in entries.items():
                outcome = "valid" if entry.is_valid() else "invalid"
                kind = "requests" if key == REQUEST_KEY else "responses"
                counts[f"{outcome}_{kind}"] += 1
        return Statistics(unparsable_messages=len(self._non_parsable), **counts)
