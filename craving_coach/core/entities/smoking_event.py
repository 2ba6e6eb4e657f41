"""Domain event representing a single smoked cigarette."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class Tag:
    name: str
    color_hex: str = "#808080"
    id: int | None = None

    @property
    def key(self) -> str:
        """Case-insensitive matching key."""
        return self.name.strip().lower()


@dataclass(slots=True)
class SmokingEvent:
    user_id: int
    timestamp: dt.datetime  # local wall-clock time
    tags: tuple[Tag, ...] = field(default_factory=tuple)
    id: int | None = None

    @property
    def has_tags(self) -> bool:
        return bool(self.tags)

    @property
    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]
