"""
Decision analytics.

The module-level functions are pure and work on a decision log (a list of
``DecisionRecord``, oldest first). ``AnalyticsService`` wraps them around a
persistence collaborator and is what the application talks to.
"""

import logging
import math
from typing import Dict, List, Optional, Protocol

import pydantic
from pydantic import TypeAdapter

from chaispas.errors import IntegrityError, ParseError, StorageUnavailable
from chaispas.models import AnalyticsSummary, ChoiceCount, DecisionRecord

logger = logging.getLogger(__name__)

MAX_HISTORY = 100
TOP_CHOICES = 10
RECENT_DECISIONS = 10

DecisionLog = List[DecisionRecord]

_log_adapter = TypeAdapter(List[DecisionRecord])


class DecisionStore(Protocol):
    """Where the decision log lives between requests."""

    def load(self) -> DecisionLog: ...

    def store(self, log: DecisionLog) -> None: ...


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def most_common_choices(log: DecisionLog, limit: int = TOP_CHOICES) -> List[ChoiceCount]:
    counts: Dict[str, int] = {}
    for record in log:
        for choice in record.choices:
            counts[choice.text] = counts.get(choice.text, 0) + 1
    # sorted() is stable, so equal counts keep first-seen order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [ChoiceCount(text=text, count=count) for text, count in ranked[:limit]]


def summarize(log: DecisionLog) -> AnalyticsSummary:
    total_decisions = len(log)
    if total_decisions == 0:
        return AnalyticsSummary(
            total_decisions=0,
            total_choices=0,
            average_choices_per_decision=0,
            average_decision_time=0,
            most_common_choices=[],
            recent_decisions=[],
            decision_history=[],
        )

    total_choices = sum(len(record.choices) for record in log)
    total_time = sum(record.decision_time for record in log)

    return AnalyticsSummary(
        total_decisions=total_decisions,
        total_choices=total_choices,
        average_choices_per_decision=_round_half_up(total_choices / total_decisions, 2),
        average_decision_time=int(_round_half_up(total_time / total_decisions)),
        most_common_choices=most_common_choices(log),
        recent_decisions=list(reversed(log[-RECENT_DECISIONS:])),
        decision_history=list(log),
    )


def append(log: DecisionLog, record: DecisionRecord) -> DecisionLog:
    """Return a new log with ``record`` added and the oldest entries evicted."""
    if not record.is_consistent():
        raise IntegrityError(
            f"Decision {record.id}: selected choice {record.selected_choice.id} "
            "is not one of its choices"
        )
    updated = list(log) + [record]
    return updated[-MAX_HISTORY:]


def clear(log: DecisionLog) -> DecisionLog:
    return []


def export(log: DecisionLog) -> str:
    return _log_adapter.dump_json(list(log), indent=2, by_alias=True).decode("utf-8")


def parse(text: str) -> DecisionLog:
    """Parse exported text back into a decision log, or raise ``ParseError``."""
    try:
        # Exactly the exported shape: camelCase keys, no type coercion
        log = _log_adapter.validate_json(text, strict=True, by_alias=True, by_name=False)
    except pydantic.ValidationError as e:
        raise ParseError(f"Invalid decision log: {e.error_count()} error(s)") from e

    for record in log:
        if not record.is_consistent():
            raise ParseError(f"Decision {record.id} selects a choice it does not contain")
    return log[-MAX_HISTORY:]


class AnalyticsService:
    """Keeps the decision log in a store and answers analytics questions about it."""

    def __init__(self, store: DecisionStore):
        self.store = store
        self._log: DecisionLog = []
        self.last_error: Optional[Exception] = None

    def history(self) -> DecisionLog:
        """Load the log. Falls back to the last good copy when loading fails."""
        try:
            self._log = list(self.store.load())
            self.last_error = None
        except (StorageUnavailable, ParseError) as e:
            logger.warning("Could not load decision history, using last known copy: %s", e)
            self.last_error = e
        return list(self._log)

    def _write(self, log: DecisionLog) -> DecisionLog:
        self.store.store(log)
        self._log = list(log)
        self.last_error = None
        return list(log)

    def save_decision(self, record: DecisionRecord) -> DecisionLog:
        """
        Append a decision to the stored log.

        Loads straight from the store: if the stored log cannot be read, the
        error propagates rather than overwriting it with a stale copy.
        ``clear_analytics`` is the way to start over from an unreadable log.
        """
        current = self.store.load()
        try:
            updated = append(current, record)
        except IntegrityError:
            logger.warning("Rejected inconsistent decision %s", record.id)
            raise
        return self._write(updated)

    def calculate_analytics(self) -> AnalyticsSummary:
        return summarize(self.history())

    def clear_analytics(self) -> None:
        self._write(clear(self._log))

    def export_analytics(self) -> str:
        return export(self.history())

    def import_analytics(self, text: str) -> DecisionLog:
        try:
            log = parse(text)
        except ParseError as e:
            logger.warning("Error importing analytics: %s", e)
            raise
        return self._write(log)
