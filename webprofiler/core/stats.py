"""Reduction of attempt outcomes into a profile report."""

import logging
import statistics
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import AttemptFailure, AttemptOutcome, AttemptSuccess, ProfileReport

logger = logging.getLogger(__name__)


def _calculate_median(values: Sequence[float]) -> Optional[float]:
    """Median with the usual midpoint averaging for even counts."""
    if not values:
        return None
    sorted_values = sorted(values)
    middle = len(sorted_values) // 2
    if len(sorted_values) % 2:
        return sorted_values[middle]
    return (sorted_values[middle - 1] + sorted_values[middle]) / 2


@dataclass
class LongestBody:
    """
    Running maximum over response bodies.

    Only one body is ever held. A body replaces the current one only when it
    is strictly larger, so ties keep the earliest body seen.
    """

    body: Optional[bytes] = None
    attempt: Optional[int] = None

    @property
    def size(self) -> Optional[int]:
        return len(self.body) if self.body is not None else None

    def offer(self, body: bytes, attempt: Optional[int] = None) -> bool:
        """Consider a body; return True if it became the retained one."""
        if self.body is None or len(body) > len(self.body):
            self.body = body
            self.attempt = attempt
            return True
        return False


class StatsAggregator:
    """
    Collects outcomes as attempts finish and reduces them into a report.

    Outcomes are appended in completion order and never modified. Response
    bodies are not stored with the outcomes; only the longest is kept.
    """

    def __init__(self):
        self.outcomes: List[AttemptOutcome] = []
        self.longest = LongestBody()

    def add_outcome(self, outcome: AttemptOutcome, body: Optional[bytes] = None) -> None:
        """Record one outcome and, for successes, offer its body."""
        self.outcomes.append(outcome)
        if body is not None and outcome.success and self.longest.offer(body, outcome.attempt):
            logger.debug(f"Request {outcome.attempt} has the longest body so far ({len(body)} B)")

    def __len__(self) -> int:
        return len(self.outcomes)

    def build_report(self) -> ProfileReport:
        """Reduce every collected outcome into a report."""
        return reduce_outcomes(self.outcomes, self.longest.body)


def reduce_outcomes(
    outcomes: Sequence[AttemptOutcome], longest_body: Optional[bytes] = None
) -> ProfileReport:
    """
    Build a report from a complete outcome collection.

    Args:
        outcomes: Every outcome of the run, in completion order
        longest_body: The retained longest body; surfaced only when more
            than one request was made

    Returns:
        ProfileReport with timing and size fields set to None when no
        attempt succeeded
    """
    total = len(outcomes)
    successes = [o for o in outcomes if isinstance(o, AttemptSuccess)]
    failures = tuple(o for o in outcomes if isinstance(o, AttemptFailure))

    success_percentage = (len(successes) / total * 100) if total > 0 else 0.0

    error_statuses = [o.status for o in successes if o.is_error_status]
    error_status_percentage = (
        (len(error_statuses) / len(successes) * 100) if successes else 0.0
    )

    elapsed = [o.elapsed for o in successes]
    sizes = [o.body_size for o in successes]

    return ProfileReport(
        request_count=total,
        successful_requests=len(successes),
        success_percentage=success_percentage,
        error_status_percentage=error_status_percentage,
        error_status_codes=frozenset(error_statuses),
        fastest=min(elapsed) if elapsed else None,
        mean=statistics.mean(elapsed) if elapsed else None,
        median=_calculate_median(elapsed),
        slowest=max(elapsed) if elapsed else None,
        smallest_size=min(sizes) if sizes else None,
        largest_size=max(sizes) if sizes else None,
        failures=failures,
        longest_body=longest_body if total > 1 else None,
    )
