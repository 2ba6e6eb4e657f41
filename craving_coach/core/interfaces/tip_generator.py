"""Capability interface for producing nudge text."""

from __future__ import annotations

import abc
from typing import Protocol, Sequence

from craving_coach.core.entities.features import CoachFeatureVector
from craving_coach.core.entities.insight import BehavioralInsight


class TipGenerator(Protocol):

    name: str

    @abc.abstractmethod
    def generate(
        self, vector: CoachFeatureVector, insights: Sequence[BehavioralInsight] = ()
    ) -> str: ...
