"""Profile and yearly goal management."""

import logging
from datetime import date
from typing import Optional

from ..config import get_config
from ..db.models import Profile
from ..db.schemas import ProfileUpdate
from ..db.sqlite import Database, get_db
from .goals import GoalResolver

logger = logging.getLogger(__name__)

MIN_GOAL = 1
MAX_GOAL = 1000


class ProfileManager:
    """Reads and updates the user's profile and goals."""

    def __init__(self, db: Optional[Database] = None, default_goal: Optional[int] = None):
        """Initialize profile manager.

        Args:
            db: Database instance
            default_goal: Goal used when none is set (default: configured goal)
        """
        self.db = db or get_db()
        self.default_goal = default_goal or get_config().default_yearly_goal

    def _clean_goal(self, goal: Optional[int]) -> int:
        """Out-of-range goals fall back to the default."""
        if goal is None or not MIN_GOAL <= goal <= MAX_GOAL:
            logger.warning("Invalid yearly goal %r, using %s", goal, self.default_goal)
            return self.default_goal
        return goal

    def get_profile(self) -> Profile:
        return self.db.get_profile(default_goal=self.default_goal)

    def update_profile(
        self,
        username: Optional[str] = None,
        yearly_goal: Optional[int] = None,
        today: Optional[date] = None,
    ) -> Profile:
        """Update the username and/or the current year's goal.

        A new goal also drops any override stored for the current year, so the
        profile goal is what that year resolves to.
        """
        fields = {}
        if username is not None:
            fields["username"] = username.strip() or None
        if yearly_goal is not None:
            fields["yearly_goal"] = self._clean_goal(yearly_goal)
        # Make sure the row exists before updating it
        self.get_profile()
        with self.db.get_session() as s:
            profile = self.db.update_profile(ProfileUpdate(**fields), session=s)
            if yearly_goal is not None:
                self.db.delete_goal_override((today or date.today()).year, session=s)
            s.flush()
            s.expunge(profile)
        return profile

    def set_year_goal(self, year: int, goal: int, today: Optional[date] = None) -> int:
        """Set the goal for a specific year. Returns the stored goal.

        The current year's goal is the profile goal, so setting it updates the
        profile. Other years are stored as overrides.
        """
        today = today or date.today()
        goal = self._clean_goal(goal)
        if year == today.year:
            self.update_profile(yearly_goal=goal, today=today)
        else:
            self.db.set_goal_override(year, goal)
        return goal

    def clear_year_goal(self, year: int) -> bool:
        """Remove a year's goal override."""
        return self.db.delete_goal_override(year)

    def goal_resolver(self, today: Optional[date] = None) -> GoalResolver:
        """Build a resolver from the stored profile and overrides."""
        today = today or date.today()
        return GoalResolver(
            overrides=self.db.get_goal_overrides(),
            canonical_goal=self.get_profile().yearly_goal,
            current_year=today.year,
            default_goal=self.default_goal,
        )
