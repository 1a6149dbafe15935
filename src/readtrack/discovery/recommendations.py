"""LLM book recommendations.

Sends the reader's request to Claude along with the titles they have read
and want to read, and parses the six suggestions that come back.
"""

import json
import logging
import re
from typing import Optional

import anthropic
from pydantic import BaseModel, ValidationError

from ..config import DEFAULT_RECOMMEND_MODEL, get_config
from ..db.models import UserBook
from ..db.schemas import BookStatus
from ..db.sqlite import Database, get_db
from ..errors import RecommendationError

logger = logging.getLogger(__name__)

RECOMMENDATION_COUNT = 6
MAX_READ_TITLES = 20
MAX_TBR_TITLES = 10
MAX_TOKENS = 1024

CODE_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
CODE_FENCE_END = re.compile(r"\s*```$")


class Recommendation(BaseModel):
    """A recommended book."""

    title: str
    author: str
    description: str = ""
    reason: str = ""


def _title_list(label: str, books: list[tuple[str, str]], limit: int) -> str:
    if not books:
        return ""
    titles = ", ".join(f'"{title}" by {author}' for title, author in books[:limit])
    return f"{label}: {titles}"


def build_system_prompt(
    read_books: list[tuple[str, str]],
    tbr_books: list[tuple[str, str]],
) -> str:
    """System prompt with the reader's history.

    Args:
        read_books: (title, author) pairs of finished books
        tbr_books: (title, author) pairs from the to-read shelf
    """
    read_list = _title_list("Books I've read", read_books, MAX_READ_TITLES)
    tbr_list = _title_list("Books on my to-read list", tbr_books, MAX_TBR_TITLES)

    return f"""You are a knowledgeable book recommendation assistant. You give thoughtful, personalised book recommendations based on a reader's taste and requests.

{read_list}
{tbr_list}

When recommending books, always respond with a JSON array of exactly {RECOMMENDATION_COUNT} books in this format:
[
  {{
    "title": "Book Title",
    "author": "Author Name",
    "description": "2-3 sentence description of the book",
    "reason": "1 sentence explaining why this matches their request or taste"
  }}
]

Only respond with the JSON array, no other text."""


def parse_recommendations(text: str) -> list[Recommendation]:
    """Parse the model's reply, which may be wrapped in a Markdown code fence.

    Raises:
        RecommendationError: If the reply is not a list of six books
    """
    cleaned = CODE_FENCE_END.sub("", CODE_FENCE_START.sub("", text.strip())).strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise RecommendationError(f"Could not parse recommendations: {e}") from e

    if not isinstance(data, list):
        raise RecommendationError("Recommendations were not a list")

    try:
        books = [Recommendation.model_validate(item) for item in data]
    except ValidationError as e:
        raise RecommendationError(f"Malformed recommendation: {e}") from e

    if len(books) != RECOMMENDATION_COUNT:
        raise RecommendationError(
            f"Expected {RECOMMENDATION_COUNT} recommendations, got {len(books)}"
        )
    return books


def _pairs(user_books: list[UserBook]) -> list[tuple[str, str]]:
    return [(ub.book.title, ub.book.author) for ub in user_books if ub.book]


class RecommendationService:
    """Asks Claude for book recommendations."""

    def __init__(
        self,
        db: Optional[Database] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[anthropic.Anthropic] = None,
    ):
        """Initialize the service.

        Args:
            db: Database instance
            api_key: Anthropic API key (default: ANTHROPIC_API_KEY)
            model: Model name (default: READTRACK_RECOMMEND_MODEL)
            client: Preconfigured Anthropic client
        """
        config = get_config()
        self.db = db or get_db()
        self.api_key = api_key or config.anthropic_api_key
        self.model = model or config.recommend_model or DEFAULT_RECOMMEND_MODEL
        self._client = client

    @property
    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            if not self.api_key:
                raise RecommendationError("ANTHROPIC_API_KEY not configured")
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def recommend(self, prompt: str) -> list[Recommendation]:
        """Six recommendations for a free-text request.

        Raises:
            RecommendationError: If no API key is set, the call fails or the
                reply cannot be parsed
        """
        if not prompt.strip():
            raise RecommendationError("Describe what you would like to read")

        client = self.client
        system = build_system_prompt(
            _pairs(self.db.list_user_books(BookStatus.FINISHED.value)),
            _pairs(self.db.list_user_books(BookStatus.WANT_TO_READ.value)),
        )

        try:
            message = client.messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            logger.error("Recommendation request failed: %s", e)
            raise RecommendationError(f"Recommendation request failed: {e}") from e

        text = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )
        return parse_recommendations(text or "[]")
