"""
Typing test submissions and the per-user speed statistics derived from them.

A user's ``max_typing_speed`` and ``average_typing_speed`` are recomputed from
that user's whole test history on every submission, so each submit costs
O(n) in the number of stored tests.

Submissions are not coordinated. Two overlapping submits for the same user
each read the history, compute, then overwrite the stored aggregates; the
one that writes last wins even if its read missed the other's test. The
next submission recomputes from the full history and corrects it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from workbench.db import DbClient, TypingTestRecord, UserRecord
from workbench.errors import PersistenceError, StoreError, SubmissionError

logger = logging.getLogger(__name__)


@dataclass
class TypingTestInput:
    wpm: float
    accuracy: float
    mistakes: int
    duration: float


@dataclass
class TypingSubmission:
    sample: TypingTestRecord
    max_speed: float
    avg_speed: int


@dataclass
class TypingStats:
    last_test: Optional[TypingTestRecord]
    max_typing_speed: float
    average_typing_speed: int
    all_tests: list[TypingTestRecord]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_speed_stats(wpms: Iterable[float]) -> tuple[float, int]:
    """Return ``(max, rounded mean)`` of the given speeds, ``(0, 0)`` if empty."""
    values = list(wpms)
    if not values:
        return 0, 0
    return max(values), round_half_up(sum(values) / len(values))


def submit_typing_test(
    db: DbClient, user: UserRecord, payload: TypingTestInput
) -> TypingSubmission:
    """
    Store a test for ``user`` and refresh the user's speed statistics.

    There is no rollback: if the statistics update fails, the test stays
    stored and the error is raised as ``SubmissionError``.
    """
    try:
        sample = db.insert_typing_test(
            user.user_id,
            wpm=payload.wpm,
            accuracy=payload.accuracy,
            mistakes=payload.mistakes,
            duration=payload.duration,
        )
        history = db.list_typing_tests(user.user_id)
        max_speed, avg_speed = compute_speed_stats(t.wpm for t in history)
        db.update_user_stats(
            user.user_id,
            max_typing_speed=max_speed,
            average_typing_speed=avg_speed,
        )
    except StoreError as exc:
        raise SubmissionError("Typing test submission failed") from exc

    logger.info(
        "Stored typing test %s for user %s (max=%s avg=%s over %d tests)",
        sample.test_id,
        user.user_id,
        max_speed,
        avg_speed,
        len(history),
    )
    return TypingSubmission(sample=sample, max_speed=max_speed, avg_speed=avg_speed)


def get_typing_stats(db: DbClient, user: UserRecord) -> TypingStats:
    try:
        stored = db.get_user(user.user_id)
        tests = db.list_typing_tests(user.user_id, newest_first=True)
    except StoreError as exc:
        raise PersistenceError("Could not load typing stats") from exc

    stored = stored or user
    return TypingStats(
        last_test=tests[0] if tests else None,
        max_typing_speed=stored.max_typing_speed or 0,
        average_typing_speed=stored.average_typing_speed or 0,
        all_tests=tests,
    )
