"""Utilities to render coach messages and keyboards for Telegram."""

from __future__ import annotations

from typing import Sequence

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from craving_coach.core.entities.decision import InterventionAction, NotificationRequest
from craving_coach.core.entities.features import FeatureSnapshot
from craving_coach.core.entities.insight import BehavioralInsight, SmokingPattern
from craving_coach.core.entities.smoking_event import Tag

ACTION_LABELS = {
    InterventionAction.BREATHE: "🌬 Breathe",
    InterventionAction.DISTRACT: "🎯 Distract me",
    InterventionAction.REMIND: "⏰ Remind me later",
    InterventionAction.DISMISS: "✖️ Dismiss",
}

ACTION_REPLIES = {
    InterventionAction.BREATHE: "Breathe in for 4, hold for 4, out for 4. Repeat four times.",
    InterventionAction.DISTRACT: "Drink a glass of water and walk to another room.",
    InterventionAction.REMIND: "OK, I'll check in again later.",
    InterventionAction.DISMISS: "Got it. You've got this.",
}

CALLBACK_PREFIX = "ACT:"

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def progress_bar(current: int, total: int, length: int = 10) -> str:
    if total <= 0:
        return ""  # avoid div/zero
    filled = int((current / total) * length)
    filled = min(max(filled, 0), length)
    return "🟥" * filled + "⬜" * (length - filled)


def build_nudge_text(request: NotificationRequest) -> str:
    return f"<b>{request.title}</b>\n{request.body}"


def build_nudge_keyboard(request: NotificationRequest) -> InlineKeyboardMarkup:
    buttons = [
        InlineKeyboardButton(text=ACTION_LABELS[a], callback_data=f"{CALLBACK_PREFIX}{a.value}")
        for a in request.actions
    ]
    # two buttons per row
    rows = [buttons[i:i + 2] for i in range(0, len(buttons), 2)]
    return InlineKeyboardMarkup(inline_keyboard=rows)


def parse_action(callback_data: str | None) -> InterventionAction | None:
    if not callback_data or not callback_data.startswith(CALLBACK_PREFIX):
        return None
    try:
        return InterventionAction(callback_data[len(CALLBACK_PREFIX):])
    except ValueError:
        return None


def build_today_text(smoked_today: int, target_today: int) -> str:
    bar = progress_bar(smoked_today, target_today)
    return f"Cigarettes today: {smoked_today}/{target_today}  {bar}".rstrip()


def build_insights_text(
    insights: Sequence[BehavioralInsight],
    urgent: Sequence[BehavioralInsight] = (),
) -> str:
    if not insights:
        return "No clear patterns yet. Keep logging and check back in a few days."
    lines = ["🔎 <b>Your patterns</b>"]
    for insight in insights:
        label = insight.type.value.replace("_", " ")
        subject = f" ({insight.subject})" if insight.subject else ""
        marker = "⚠️" if insight in urgent else "•"
        lines.append(
            f"{marker} {label}{subject}: risk {insight.risk_score:.0%}, confidence {insight.confidence_score:.0%}"
        )
        if insight.recommendations:
            lines.append(f"  ↳ {insight.recommendations[0]}")
    return "\n".join(lines)


def _change(value: float | None) -> str:
    return "n/a" if value is None else f"{value:+.0f}%"


def build_summary_text(pattern: SmokingPattern, last_check: FeatureSnapshot | None = None) -> str:
    trends = pattern.progress_trends
    lines = ["📊 <b>Summary</b>"]
    if pattern.peak_hours:
        lines.append("Peak hours: " + ", ".join(f"{h:02d}:00" for h in pattern.peak_hours))
    if pattern.peak_weekdays:
        lines.append("Peak days: " + ", ".join(WEEKDAYS[d] for d in pattern.peak_weekdays))
    lines.append(f"Average interval: {pattern.average_interval_minutes:.0f} min")
    if pattern.most_common_triggers:
        lines.append("Triggers: " + ", ".join(pattern.most_common_triggers))
    lines.append(f"This week vs last: {_change(trends.weekly_change)}")
    lines.append(f"This month vs last: {_change(trends.monthly_change)}")
    lines.append(f"Longest smoke-free streak: {trends.longest_streak} days")
    if trends.compliance_rate is not None:
        lines.append(f"Days within target: {trends.compliance_rate:.0%}")
    if last_check is not None:
        lines.append(
            f"Last check {last_check.computed_at:%H:%M}: "
            f"{last_check.vector.minutes_since_last_event:.0f} min since your last cigarette"
        )
    return "\n".join(lines)


def build_tags_text(tags: Sequence[Tag]) -> str:
    if not tags:
        return "No tags yet. Add some with /smoke coffee stress"
    return "🏷 " + ", ".join(t.name for t in tags)
