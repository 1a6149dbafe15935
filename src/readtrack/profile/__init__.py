"""User profile and reading goals."""

from .goals import GoalResolver
from .manager import ProfileManager

__all__ = ["GoalResolver", "ProfileManager"]
