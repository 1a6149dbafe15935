"""Yearly reading goal resolution.

The profile holds one canonical goal, used for the current year. Goals for
other years live in a sparse override table. Years with neither fall back to
a fixed default.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ..config import DEFAULT_YEARLY_GOAL


@dataclass
class GoalResolver:
    """Resolve the reading goal for a given year."""

    overrides: dict[int, int] = field(default_factory=dict)
    canonical_goal: Optional[int] = None
    current_year: int = field(default_factory=lambda: date.today().year)
    default_goal: int = DEFAULT_YEARLY_GOAL

    def goal_for(self, year: int) -> int:
        """Goal for `year`.

        Current year: override, else the profile goal, else the default.
        Any other year: override, else the default.
        """
        if year in self.overrides:
            return self.overrides[year]
        if year == self.current_year and self.canonical_goal:
            return self.canonical_goal
        return self.default_goal

    def is_override(self, year: int) -> bool:
        return year in self.overrides
