"""Behavioral pattern mining over the full smoking history.

Every sub-analysis is a pure function of the event log (plus the profile
for plan-relative checks) and returns zero or more insights; too little
data simply yields nothing.

Pattern types:
- time_pattern: hour of day that concentrates smoking
- social_influence: weekend spikes and social-context tags
- trigger_pattern: dominant tags among tagged events
- streak_breaker: recurring context in which smoke-free streaks end
- environmental_trigger: dominant location tag
- progress_regression: trailing week worse than the previous one and the plan
"""

from __future__ import annotations

import datetime as dt
import logging
import statistics
from collections import Counter, defaultdict
from typing import Callable, Iterable, List, Sequence

from craving_coach.core.coaching.streaks import (
    day_range,
    events_per_day,
    hour_histogram,
    streak_closing_days,
    streak_lengths,
)
from craving_coach.core.entities.insight import (
    BehavioralInsight,
    InsightType,
    RelapsePattern,
    RelapseSeverity,
    SmokingPattern,
    TrendAnalysis,
)
from craving_coach.core.entities.smoking_event import SmokingEvent
from craving_coach.core.entities.user_profile import UserProfile

logger = logging.getLogger(__name__)

MAX_RETAINED_INSIGHTS = 3
MAX_TRIGGER_INSIGHTS = 3
MIN_RELAPSE_FREQUENCY = 2
MIN_EVENTS_FOR_REGRESSION = 7

SOCIAL_CONTEXT_TAGS = frozenset(
    {"social", "friends", "party", "bar", "restaurant", "work_break", "meeting"}
)
LOCATION_TAGS = frozenset({"home", "work", "car", "outside", "balcony", "kitchen", "office"})

UNTAGGED = "untagged"

TRIGGER_RECOMMENDATIONS = {
    "stress": (
        "Practice 4-7-8 breathing when stressed",
        "Take a 5-minute walk when feeling stressed",
        "Use a mindfulness session for stress management",
    ),
    "social": (
        "Find non-smoking social activities",
        "Tell friends about your quit plan",
        "Practice polite ways to decline smoking invitations",
    ),
    "boredom": (
        "Keep a list of 5-minute activities handy",
        "Start a new hobby that keeps your hands busy",
        "Turn boredom into productive micro-tasks",
    ),
}


def normalize_tag(name: str) -> str:
    """Vocabulary key: lower case, spaces and dashes folded to underscores."""
    return name.strip().lower().replace("-", "_").replace(" ", "_")


def trigger_recommendations(trigger: str) -> tuple[str, ...]:
    known = TRIGGER_RECOMMENDATIONS.get(normalize_tag(trigger))
    if known:
        return known
    return (
        f"Identify early warning signs of {trigger} triggers",
        f"Create healthy alternatives for {trigger} situations",
        f"Avoid or minimize {trigger} triggers when possible",
    )


def _percentage(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


def _percent_change(current: int, previous: int) -> float | None:
    if previous == 0:
        return None
    return (current - previous) / previous * 100


def _count_between(events: Iterable[SmokingEvent], start: dt.datetime, end: dt.datetime) -> int:
    return sum(1 for e in events if start < e.timestamp <= end)


class PatternAnalyzer:
    """Mines recurring structure from a user's smoking log.

    ``analyze`` runs every sub-analysis, keeps the most confident
    insights and returns them ordered by risk. The analyzer holds no state
    and performs no I/O, so calls may run concurrently.
    """

    def __init__(self, max_insights: int = MAX_RETAINED_INSIGHTS) -> None:
        self.max_insights = max_insights

    def analyze(
        self,
        events: Sequence[SmokingEvent],
        profile: UserProfile | None = None,
        now: dt.datetime | None = None,
    ) -> List[BehavioralInsight]:
        now = now or dt.datetime.now()
        analyses: list[Callable[[], List[BehavioralInsight]]] = [
            lambda: self.time_patterns(events, now),
            lambda: self.weekend_pattern(events, now),
            lambda: self.trigger_patterns(events, now),
            lambda: self.streak_patterns(events, profile, now),
            lambda: self.social_patterns(events, now),
            lambda: self.environmental_patterns(events, now),
            lambda: self.progress_patterns(events, profile, now),
        ]
        found: List[BehavioralInsight] = []
        for analysis in analyses:
            found.extend(analysis())

        retained = sorted(found, key=lambda i: (-i.confidence_score, -i.risk_score))[: self.max_insights]
        retained.sort(key=lambda i: i.risk_score, reverse=True)
        logger.info(
            "Behavioral analysis: %d events, %d insights found, %d retained",
            len(events),
            len(found),
            len(retained),
        )
        return retained

    # ------------------------------------------------------------------
    # Sub-analyses
    # ------------------------------------------------------------------

    def time_patterns(self, events: Sequence[SmokingEvent], now: dt.datetime) -> List[BehavioralInsight]:
        total = len(events)
        if total == 0:
            return []

        hours = hour_histogram(events)
        peaks = sorted(
            ((hour, count) for hour, count in hours.items() if count * 7 > total),
            key=lambda hc: (-hc[1], hc[0]),
        )
        if not peaks:
            return []

        peak_hour, peak_count = peaks[0]
        peak_percentage = _percentage(peak_count, total)
        return [
            BehavioralInsight(
                type=InsightType.TIME_PATTERN,
                confidence_score=min(0.95, peak_percentage / 50.0),
                risk_score=min(0.9, peak_percentage / 40.0),
                detected_at=now,
                subject=f"{peak_hour:02d}:00",
                recommendations=(
                    f"Plan alternative activities for {peak_hour}:00-{peak_hour + 1}:00",
                    "Practice deep breathing during peak craving times",
                    "Schedule important tasks during your peak smoking hours",
                ),
                supporting_statistics={
                    "peak_hour": float(peak_hour),
                    "peak_percentage": peak_percentage,
                    "peak_hour_count": float(len(peaks)),
                    "total_events": float(total),
                },
            )
        ]

    def weekend_pattern(self, events: Sequence[SmokingEvent], now: dt.datetime) -> List[BehavioralInsight]:
        """Per-day weekday vs weekend averages over the observed calendar span."""
        if not events:
            return []

        counts = events_per_day(events)
        weekday_days = weekend_days = 0
        weekday_events = weekend_events = 0
        for day in day_range(min(counts), max(counts)):
            if day.weekday() >= 5:
                weekend_days += 1
                weekend_events += counts.get(day, 0)
            else:
                weekday_days += 1
                weekday_events += counts.get(day, 0)

        if weekday_days == 0 or weekend_days == 0:
            return []

        weekday_avg = weekday_events / weekday_days
        weekend_avg = weekend_events / weekend_days
        difference = weekend_avg - weekday_avg
        if difference <= 2:
            return []

        return [
            BehavioralInsight(
                type=InsightType.SOCIAL_INFLUENCE,
                confidence_score=0.8,
                risk_score=min(0.8, difference / 10.0),
                detected_at=now,
                subject="weekend",
                recommendations=(
                    "Plan smoke-free weekend activities",
                    "Identify and avoid smoking social situations",
                    "Maintain weekday routines on weekends",
                ),
                supporting_statistics={
                    "weekday_avg": weekday_avg,
                    "weekend_avg": weekend_avg,
                    "difference": difference,
                },
            )
        ]

    def trigger_patterns(self, events: Sequence[SmokingEvent], now: dt.datetime) -> List[BehavioralInsight]:
        tagged = [e for e in events if e.has_tags]
        if not tagged:
            return []

        counts: Counter[str] = Counter()
        display: dict[str, str] = {}
        for event in tagged:
            for key in {t.key for t in event.tags}:
                counts[key] += 1
        for event in tagged:
            for tag in event.tags:
                display.setdefault(tag.key, tag.name)

        total_tagged = len(tagged)
        dominant = sorted(
            ((key, count) for key, count in counts.items() if count * 5 > total_tagged),
            key=lambda kc: (-kc[1], kc[0]),
        )[:MAX_TRIGGER_INSIGHTS]

        insights = []
        for key, count in dominant:
            percentage = _percentage(count, total_tagged)
            trigger = display[key]
            insights.append(
                BehavioralInsight(
                    type=InsightType.TRIGGER_PATTERN,
                    confidence_score=min(0.9, percentage / 50.0),
                    risk_score=min(0.9, percentage / 30.0),
                    detected_at=now,
                    subject=trigger,
                    recommendations=trigger_recommendations(trigger),
                    supporting_statistics={
                        "trigger_count": float(count),
                        "percentage": percentage,
                        "total_tagged": float(total_tagged),
                    },
                )
            )
        return insights

    def streak_patterns(
        self,
        events: Sequence[SmokingEvent],
        profile: UserProfile | None,
        now: dt.datetime,
    ) -> List[BehavioralInsight]:
        streaks = streak_lengths(events, now.date())
        if not streaks:
            return []

        relapses = self.relapse_patterns(events, profile, now)
        if not relapses or relapses[0].frequency < MIN_RELAPSE_FREQUENCY:
            return []

        common = relapses[0]
        return [
            BehavioralInsight(
                type=InsightType.STREAK_BREAKER,
                confidence_score=0.7,
                risk_score=min(0.8, common.frequency / 10.0),
                detected_at=now,
                subject=common.trigger,
                recommendations=(
                    f"Prepare coping strategies for {common.trigger}",
                    f"Avoid {common.trigger} situations at {common.hour_of_day}:00",
                    "Have support ready during vulnerable times",
                ),
                supporting_statistics={
                    "average_streak": statistics.fmean(streaks),
                    "longest_streak": float(max(streaks)),
                    "streak_count": float(len(streaks)),
                    "relapse_frequency": float(common.frequency),
                    "relapse_hour": float(common.hour_of_day),
                },
            )
        ]

    def social_patterns(self, events: Sequence[SmokingEvent], now: dt.datetime) -> List[BehavioralInsight]:
        total = len(events)
        if total == 0:
            return []

        social = [e for e in events if any(normalize_tag(t.name) in SOCIAL_CONTEXT_TAGS for t in e.tags)]
        if len(social) * 4 <= total:
            return []

        percentage = _percentage(len(social), total)
        return [
            BehavioralInsight(
                type=InsightType.SOCIAL_INFLUENCE,
                confidence_score=0.8,
                risk_score=min(0.7, percentage / 50.0),
                detected_at=now,
                subject="social",
                recommendations=TRIGGER_RECOMMENDATIONS["social"],
                supporting_statistics={
                    "social_percentage": percentage,
                    "social_count": float(len(social)),
                },
            )
        ]

    def environmental_patterns(self, events: Sequence[SmokingEvent], now: dt.datetime) -> List[BehavioralInsight]:
        locations: Counter[str] = Counter()
        for event in events:
            location = next((normalize_tag(t.name) for t in event.tags if normalize_tag(t.name) in LOCATION_TAGS), None)
            if location:
                locations[location] += 1

        total_with_location = sum(locations.values())
        if total_with_location == 0:
            return []

        location, count = min(locations.items(), key=lambda lc: (-lc[1], lc[0]))
        if count * 3 <= total_with_location:
            return []

        percentage = _percentage(count, total_with_location)
        return [
            BehavioralInsight(
                type=InsightType.ENVIRONMENTAL_TRIGGER,
                confidence_score=0.8,
                risk_score=min(0.8, percentage / 40.0),
                detected_at=now,
                subject=location,
                recommendations=(
                    f"Modify your {location} environment to reduce triggers",
                    f"Limit time spent in {location} when possible",
                    "Create new positive associations with this space",
                ),
                supporting_statistics={
                    "location_percentage": percentage,
                    "location_count": float(count),
                },
            )
        ]

    def progress_patterns(
        self,
        events: Sequence[SmokingEvent],
        profile: UserProfile | None,
        now: dt.datetime,
    ) -> List[BehavioralInsight]:
        if profile is None or len(events) < MIN_EVENTS_FOR_REGRESSION:
            return []

        week = dt.timedelta(days=7)
        last_week = _count_between(events, now - week, now)
        previous_week = _count_between(events, now - 2 * week, now - week)
        weekly_target = profile.weekly_target(today=now.date())

        if not (last_week > previous_week + 3 and last_week > weekly_target):
            return []

        increase = last_week - previous_week
        return [
            BehavioralInsight(
                type=InsightType.PROGRESS_REGRESSION,
                confidence_score=0.9,
                risk_score=min(0.9, increase / 10.0),
                detected_at=now,
                recommendations=(
                    "Review what changed in your routine this week",
                    "Reach out for additional support",
                    "Be patient with yourself - setbacks are normal",
                ),
                supporting_statistics={
                    "last_week": float(last_week),
                    "previous_week": float(previous_week),
                    "increase": float(increase),
                    "target": float(weekly_target),
                },
            )
        ]

    # ------------------------------------------------------------------
    # Relapses & summary
    # ------------------------------------------------------------------

    def relapse_patterns(
        self,
        events: Sequence[SmokingEvent],
        profile: UserProfile | None,
        now: dt.datetime,
    ) -> List[RelapsePattern]:
        """Group the events that ended streaks by trigger and hour."""
        closing = streak_closing_days(events, now.date())
        if not closing:
            return []

        by_day: dict[dt.date, list[SmokingEvent]] = defaultdict(list)
        for event in events:
            by_day[event.timestamp.date()].append(event)

        groups: dict[tuple[str, int], list[tuple[SmokingEvent, RelapseSeverity]]] = defaultdict(list)
        for day in closing:
            day_events = sorted(by_day[day], key=lambda e: e.timestamp)
            first = day_events[0]
            trigger = first.tags[0].name if first.tags else UNTAGGED
            target = profile.today_target(today=day) if profile else 0
            severity = _severity(len(day_events) - target)
            groups[(trigger, first.timestamp.hour)].append((first, severity))

        patterns = []
        for (trigger, hour), members in groups.items():
            weekdays = Counter(e.timestamp.weekday() for e, _ in members)
            worst = max((s for _, s in members), key=_SEVERITY_ORDER.index)
            patterns.append(
                RelapsePattern(
                    trigger=trigger,
                    hour_of_day=hour,
                    weekday=min(weekdays.items(), key=lambda wc: (-wc[1], wc[0]))[0],
                    frequency=len(members),
                    severity=worst,
                )
            )
        patterns.sort(key=lambda p: (-p.frequency, p.hour_of_day, p.trigger))
        return patterns

    def summarize(
        self,
        events: Sequence[SmokingEvent],
        profile: UserProfile | None = None,
        now: dt.datetime | None = None,
    ) -> SmokingPattern:
        """Aggregate view of the history with real trend statistics."""
        now = now or dt.datetime.now()

        hours = hour_histogram(events)
        weekdays = Counter(e.timestamp.weekday() for e in events)
        peak_hours = tuple(h for h, _ in sorted(hours.items(), key=lambda hc: (-hc[1], hc[0]))[:3])
        peak_weekdays = tuple(d for d, _ in sorted(weekdays.items(), key=lambda dc: (-dc[1], dc[0]))[:3])

        ordered = sorted(e.timestamp for e in events)
        intervals = [(b - a).total_seconds() / 60.0 for a, b in zip(ordered, ordered[1:])]

        triggers: Counter[str] = Counter(t.name for e in events for t in e.tags)
        tag_names = {normalize_tag(name) for name in triggers}

        streaks = streak_lengths(events, now.date())
        week, month = dt.timedelta(days=7), dt.timedelta(days=30)
        trends = TrendAnalysis(
            weekly_change=_percent_change(
                _count_between(events, now - week, now), _count_between(events, now - 2 * week, now - week)
            ),
            monthly_change=_percent_change(
                _count_between(events, now - month, now), _count_between(events, now - 2 * month, now - month)
            ),
            streak_lengths=tuple(streaks),
            average_streak_length=statistics.fmean(streaks) if streaks else 0.0,
            longest_streak=max(streaks, default=0),
            relapse_patterns=tuple(self.relapse_patterns(events, profile, now)),
            compliance_rate=self.compliance_rate(events, profile, now),
        )

        return SmokingPattern(
            peak_hours=peak_hours,
            peak_weekdays=peak_weekdays,
            average_interval_minutes=statistics.fmean(intervals) if intervals else 0.0,
            most_common_triggers=tuple(name for name, _ in triggers.most_common(5)),
            social_contexts=tuple(sorted(tag_names & SOCIAL_CONTEXT_TAGS)),
            environmental_factors=tuple(sorted(tag_names & LOCATION_TAGS)),
            progress_trends=trends,
        )

    def compliance_rate(
        self,
        events: Sequence[SmokingEvent],
        profile: UserProfile | None,
        now: dt.datetime,
    ) -> float | None:
        """Share of days since the first event that stayed within the plan."""
        if profile is None or not events:
            return None
        counts = events_per_day(events)
        days = list(day_range(min(counts), now.date()))
        if not days:
            return None
        within = sum(1 for day in days if counts.get(day, 0) <= profile.today_target(today=day))
        return within / len(days)


_SEVERITY_ORDER = [RelapseSeverity.MINOR, RelapseSeverity.MODERATE, RelapseSeverity.MAJOR]


def _severity(over_target: int) -> RelapseSeverity:
    if over_target <= 2:
        return RelapseSeverity.MINOR
    if over_target <= 5:
        return RelapseSeverity.MODERATE
    return RelapseSeverity.MAJOR


def high_risk_insights(insights: Iterable[BehavioralInsight]) -> List[BehavioralInsight]:
    return [i for i in insights if i.risk_score > 0.7]


def contextual_insights(
    insights: Iterable[BehavioralInsight],
    now: dt.datetime,
    recent_events: Sequence[SmokingEvent],
) -> List[BehavioralInsight]:
    """Insights relevant to the current hour, weekday and recent activity."""
    relevant = []
    for insight in insights:
        if insight.type is InsightType.TIME_PATTERN:
            keep = insight.supporting_statistics.get("peak_hour") == float(now.hour)
        elif insight.type is InsightType.TRIGGER_PATTERN:
            keep = bool(recent_events)
        elif insight.type is InsightType.STREAK_BREAKER:
            keep = not recent_events
        elif insight.type is InsightType.SOCIAL_INFLUENCE:
            keep = now.weekday() >= 4  # Friday through Sunday
        else:
            keep = insight.risk_score > 0.5
        if keep:
            relevant.append(insight)
    return relevant
