"""Calendar and streak utilities shared by the pattern analyzer."""

from __future__ import annotations

import datetime as dt
from collections import Counter
from typing import Iterable, Iterator, List, Sequence

from craving_coach.core.entities.smoking_event import SmokingEvent


def day_range(start: dt.date, end: dt.date) -> Iterator[dt.date]:
    """Calendar days from ``start`` to ``end`` inclusive."""
    day = start
    while day <= end:
        yield day
        day += dt.timedelta(days=1)


def events_per_day(events: Iterable[SmokingEvent]) -> Counter[dt.date]:
    return Counter(e.timestamp.date() for e in events)


def hour_histogram(events: Iterable[SmokingEvent]) -> Counter[int]:
    return Counter(e.timestamp.hour for e in events)


def streak_lengths(events: Sequence[SmokingEvent], today: dt.date) -> List[int]:
    """Full sequence of zero-event streaks from the first event to ``today``.

    A day with events closes the running streak; the streak still open at
    ``today`` is included. Unlike the feature extractor's current streak
    this is not capped.
    """
    if not events:
        return []

    counts = events_per_day(events)
    first_day = min(counts)
    streaks: List[int] = []
    current = 0
    for day in day_range(first_day, today):
        if counts.get(day, 0) == 0:
            current += 1
        elif current > 0:
            streaks.append(current)
            current = 0
    if current > 0:
        streaks.append(current)
    return streaks


def streak_closing_days(events: Sequence[SmokingEvent], today: dt.date) -> List[dt.date]:
    """Days with events that ended a zero-event streak (relapse days)."""
    if not events:
        return []

    counts = events_per_day(events)
    closing: List[dt.date] = []
    current = 0
    for day in day_range(min(counts), today):
        if counts.get(day, 0) == 0:
            current += 1
        else:
            if current > 0:
                closing.append(day)
            current = 0
    return closing
