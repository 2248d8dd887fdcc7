"""
The decision engine: pick one entry out of a candidate set, uniformly.

``decide`` is the pure draw. ``run_decision`` is the workflow around it that
enforces the two-choice minimum and measures how long the decision took.
"""

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Protocol, Sequence
from uuid import uuid4

from chaispas.errors import InvalidInput, ValidationError
from chaispas.models import Choice, DecisionRecord

logger = logging.getLogger(__name__)

MIN_CHOICES = 2


class IndexSource(Protocol):
    def next_index(self, n: int) -> int:
        """Return an integer in ``[0, n)``."""
        ...


class RandomIndexSource:
    """Memoryless uniform draws backed by ``random.Random``."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def next_index(self, n: int) -> int:
        return self._rng.randrange(n)


class SequenceIndexSource:
    """Replays a fixed list of indices, cycling when exhausted."""

    def __init__(self, indices: Iterable[int]):
        self._indices = list(indices)
        if not self._indices:
            raise ValueError("SequenceIndexSource needs at least one index")
        self._position = 0

    def next_index(self, n: int) -> int:
        index = self._indices[self._position % len(self._indices)]
        self._position += 1
        return index


_default_source = RandomIndexSource()


def decide(choices: Sequence[Choice], index_source: Optional[IndexSource] = None) -> Choice:
    """Draw one entry uniformly at random."""
    if not choices:
        raise InvalidInput("Cannot decide between zero choices")
    source = index_source or _default_source
    index = source.next_index(len(choices))
    if not 0 <= index < len(choices):
        raise InvalidInput(f"Index source returned {index} for {len(choices)} choices")
    return choices[index]


@dataclass(frozen=True)
class DecisionOutcome:
    choice: Choice
    decision_time: int


def run_decision(
    choices: Sequence[Choice],
    index_source: Optional[IndexSource] = None,
    clock: Callable[[], float] = time.monotonic,
) -> DecisionOutcome:
    """Pick a winner for the user, timing the draw in whole milliseconds."""
    if len(choices) < MIN_CHOICES:
        raise ValidationError(f"Please add at least {MIN_CHOICES} choices")

    started = clock()
    winner = decide(choices, index_source)
    finished = clock()

    elapsed_ms = max(0, int(round((finished - started) * 1000)))
    logger.debug("Picked %r out of %d choices in %d ms", winner.text, len(choices), elapsed_ms)
    return DecisionOutcome(choice=winner, decision_time=elapsed_ms)


def build_record(
    choices: Sequence[Choice],
    outcome: DecisionOutcome,
    now: Optional[datetime] = None,
) -> DecisionRecord:
    return DecisionRecord(
        id=uuid4().hex,
        timestamp=now or datetime.now(timezone.utc),
        choices=list(choices),
        selected_choice=outcome.choice,
        decision_time=outcome.decision_time,
    )
