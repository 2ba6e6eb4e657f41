"""Nudge text generators.

Two interchangeable implementations of the ``TipGenerator`` capability;
which one runs is decided once by :func:`select_tip_generator`.
"""

from __future__ import annotations

import enum
import logging
import random
from dataclasses import dataclass
from typing import Sequence

from craving_coach import settings
from craving_coach.core.entities.features import CoachFeatureVector
from craving_coach.core.entities.insight import BehavioralInsight, InsightType
from craving_coach.core.interfaces.tip_generator import TipGenerator

logger = logging.getLogger(__name__)

FALLBACK_TIP = "Stay strong. You're doing great."


class TipCategory(str, enum.Enum):
    BREATHING = "breathing"
    DISTRACTION = "distraction"
    IF_THEN = "if_then"
    ENVIRONMENT = "environment"
    SOCIAL = "social"
    NRT = "nrt"
    MOTIVATION = "motivation"
    MOVEMENT = "movement"


class TipContext(str, enum.Enum):
    MORNING = "morning"
    POST_MEAL = "post_meal"
    HIGH_URGE = "high_urge"
    LOW_STEPS = "low_steps"
    AFTER_RELAPSE = "after_relapse"
    ON_STREAK = "on_streak"
    POOR_SLEEP = "poor_sleep"
    HIGH_RISK_HOUR = "high_risk_hour"
    RECENT = "recent"


@dataclass(slots=True, frozen=True)
class CoachTip:
    content: str
    category: TipCategory
    contexts: tuple[TipContext, ...] = ()


TIP_LIBRARY: tuple[CoachTip, ...] = (
    CoachTip("Take 4 slow breaths: in for 4, hold for 4, out for 4, pause for 4.", TipCategory.BREATHING, (TipContext.RECENT, TipContext.HIGH_URGE)),
    CoachTip("Try the 4-7-8 technique: breathe in for 4, hold for 7, exhale for 8.", TipCategory.BREATHING, (TipContext.POOR_SLEEP,)),
    CoachTip("One minute of deep belly breathing. Feel your stomach rise and fall.", TipCategory.BREATHING, (TipContext.MORNING, TipContext.HIGH_URGE)),
    CoachTip("Take 20 steps. Walk to another room or around the block.", TipCategory.MOVEMENT, (TipContext.LOW_STEPS, TipContext.HIGH_RISK_HOUR)),
    CoachTip("Do 10 jumping jacks or stretch your arms above your head.", TipCategory.MOVEMENT, (TipContext.LOW_STEPS,)),
    CoachTip("Drink a full glass of water slowly.", TipCategory.DISTRACTION, (TipContext.POST_MEAL, TipContext.RECENT)),
    CoachTip("Count backwards from 100 by 7s. Keep your mind busy.", TipCategory.DISTRACTION, (TipContext.HIGH_URGE,)),
    CoachTip("Text someone who supports your quit journey.", TipCategory.SOCIAL, (TipContext.AFTER_RELAPSE, TipContext.ON_STREAK)),
    CoachTip("If you reach for a cigarette, then drink water and count to 60.", TipCategory.IF_THEN, (TipContext.RECENT,)),
    CoachTip("If stress hits, then step outside for 2 minutes of fresh air.", TipCategory.IF_THEN, (TipContext.HIGH_URGE,)),
    CoachTip("Change your location. Go somewhere smoking isn't allowed.", TipCategory.ENVIRONMENT, (TipContext.HIGH_RISK_HOUR,)),
    CoachTip("Keep your hands busy. Hold a stress ball or fidget toy.", TipCategory.ENVIRONMENT, (TipContext.HIGH_URGE,)),
    CoachTip("Your patch is working. Give it time to reduce the craving.", TipCategory.NRT),
    CoachTip("Chew your gum slowly. Park it between cheek and gum.", TipCategory.NRT),
    CoachTip("Every minute without smoking is a victory. You're stronger than the urge.", TipCategory.MOTIVATION, (TipContext.RECENT,)),
    CoachTip("Your lungs are cleaning themselves right now. Keep going.", TipCategory.MOTIVATION, (TipContext.ON_STREAK,)),
)


class TemplateTipGenerator:
    """Picks a random library tip matching the current context."""

    name = "template"

    def __init__(self, library: Sequence[CoachTip] = TIP_LIBRARY, rng: random.Random | None = None) -> None:
        self._library = tuple(library)
        self._rng = rng or random.Random()

    def candidates(self, vector: CoachFeatureVector) -> list[str]:
        wanted: list[TipContext] = []
        if vector.minutes_since_last_event < 30:
            wanted.append(TipContext.RECENT)
        if vector.current_abstinence_streak_days > 0:
            wanted.append(TipContext.ON_STREAK)
        if vector.poor_sleep_flag:
            wanted.append(TipContext.POOR_SLEEP)
        if vector.recent_activity_level < 1000:
            wanted.append(TipContext.LOW_STEPS)
        if vector.time_of_day_risk > 0.7:
            wanted.append(TipContext.HIGH_RISK_HOUR)

        relevant = [tip for ctx in wanted for tip in self._library if ctx in tip.contexts]
        if vector.recent_nrt_use_flag:
            relevant.extend(tip for tip in self._library if tip.category is TipCategory.NRT)
        if not relevant:
            relevant = [
                tip for tip in self._library if tip.category in (TipCategory.BREATHING, TipCategory.MOTIVATION)
            ]
        return [tip.content for tip in relevant]

    def generate(self, vector: CoachFeatureVector, insights: Sequence[BehavioralInsight] = ()) -> str:
        tips = self.candidates(vector)
        return self._rng.choice(tips) if tips else FALLBACK_TIP


class ContextualTipGenerator:
    """Deterministic tip keyed on the most pressing feature, personalised by insights."""

    name = "contextual"

    def generate(self, vector: CoachFeatureVector, insights: Sequence[BehavioralInsight] = ()) -> str:
        if vector.minutes_since_last_event < 30:
            tip = "Take 5 deep breaths. Each minute without smoking is progress."
        elif vector.current_abstinence_streak_days > 0:
            tip = f"Day {vector.current_abstinence_streak_days} smoke-free! Try 3 minutes of mindful breathing."
        elif vector.poor_sleep_flag:
            tip = "Tired? Try box breathing: 4-4-4-4. Rest without reaching for a cigarette."
        elif vector.recent_activity_level < 1000:
            tip = "Move for 2 minutes. Walk, stretch, or do jumping jacks instead."
        elif vector.time_of_day_risk > 0.7:
            tip = "This is your trigger time. Drink water and change your environment."
        elif vector.recent_nrt_use_flag:
            tip = "Your NRT is working. Add 1 minute of breathing exercises for extra support."
        else:
            tip = "Stay strong. Every moment you resist is your body healing."

        trigger = next(
            (i for i in insights if i.type is InsightType.TRIGGER_PATTERN and i.subject),
            None,
        )
        if trigger is not None:
            tip = f"{tip} Watch out for {trigger.subject}: {trigger.recommendations[0]}."
        return tip


def select_tip_generator(kind: str = settings.TIP_GENERATOR, rng: random.Random | None = None) -> TipGenerator:
    if kind == ContextualTipGenerator.name:
        return ContextualTipGenerator()
    if kind == TemplateTipGenerator.name:
        return TemplateTipGenerator(rng=rng)
    logger.warning("Unknown tip generator %r, falling back to templates", kind)
    return TemplateTipGenerator(rng=rng)
