"""Configuration management for readtrack.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_DATA_DIR = Path.home() / ".readtrack"
DEFAULT_YEARLY_GOAL = 50
DEFAULT_RECOMMEND_MODEL = "claude-haiku-4-5-20251001"


@dataclass
class Config:
    """Application configuration."""

    # Storage
    db_path: Path
    timer_path: Path

    # Goals
    default_yearly_goal: int

    # External services
    http_timeout: int  # seconds
    cache_ttl: int  # seconds
    google_books_api_key: Optional[str]
    anthropic_api_key: Optional[str]
    recommend_model: str

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path = Path(
            os.environ.get("READTRACK_DB_PATH", str(DEFAULT_DATA_DIR / "readtrack.db"))
        ).expanduser()
        timer_path = Path(
            os.environ.get(
                "READTRACK_TIMER_PATH", str(DEFAULT_DATA_DIR / "timer_state.json")
            )
        ).expanduser()

        return cls(
            db_path=db_path,
            timer_path=timer_path,
            default_yearly_goal=int(
                os.environ.get("READTRACK_DEFAULT_GOAL", str(DEFAULT_YEARLY_GOAL))
            ),
            http_timeout=int(os.environ.get("READTRACK_HTTP_TIMEOUT", "10")),
            cache_ttl=int(os.environ.get("READTRACK_CACHE_TTL", "3600")),
            google_books_api_key=os.environ.get("GOOGLE_BOOKS_API_KEY"),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY"),
            recommend_model=os.environ.get(
                "READTRACK_RECOMMEND_MODEL", DEFAULT_RECOMMEND_MODEL
            ),
            log_level=os.environ.get("READTRACK_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        for directory in {self.db_path.parent, self.timer_path.parent}:
            if not directory.exists():
                try:
                    directory.mkdir(parents=True, exist_ok=True)
                except PermissionError:
                    errors.append(f"Cannot create data directory: {directory}")

        if self.default_yearly_goal < 1:
            errors.append("READTRACK_DEFAULT_GOAL must be at least 1")

        return errors

    def has_recommendation_config(self) -> bool:
        """Check if an LLM API key is present."""
        return bool(self.anthropic_api_key)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
