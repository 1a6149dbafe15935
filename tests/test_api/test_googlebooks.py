"""Tests for the Google Books client and the combined details lookup."""

from unittest.mock import MagicMock

import pytest
import requests

from readtrack.api.details import BookDetailsService
from readtrack.api.googlebooks import BookDetails, GoogleBooksClient, clean_title, parse_volume
from readtrack.api.openlibrary import CommunityRating
from readtrack.errors import MetadataLookupError

VOLUME = {
    "volumeInfo": {
        "title": "Piranesi",
        "authors": ["Susanna Clarke"],
        "description": "A house of endless halls.",
        "averageRating": 4.5,
        "ratingsCount": 120,
        "pageCount": 272,
        "publishedDate": "2020-09-15",
        "categories": ["Fiction"],
        "imageLinks": {
            "smallThumbnail": "http://books.google.com/small.jpg",
            "thumbnail": "http://books.google.com/thumb.jpg",
        },
        "industryIdentifiers": [
            {"type": "ISBN_10", "identifier": "1635575990"},
            {"type": "ISBN_13", "identifier": "9781635575996"},
        ],
    }
}


def make_response(items):
    response = MagicMock()
    response.json.return_value = {"items": items} if items is not None else {}
    return response


@pytest.fixture
def client():
    client = GoogleBooksClient(api_key="key-123")
    client._min_request_interval = 0
    client._session = MagicMock()
    return client


class TestCleanTitle:
    """Tests for clean_title."""

    def test_series_number(self):
        assert clean_title("Leviathan Wakes (The Expanse, #1)") == "Leviathan Wakes"

    def test_long_parenthetical(self):
        assert clean_title("Emma (Penguin Classics Deluxe Edition)") == "Emma"

    def test_short_parenthetical_kept(self):
        assert clean_title("Dune (Reissue)") == "Dune (Reissue)"


class TestParseVolume:
    """Tests for parse_volume."""

    def test_full_volume(self):
        """Test every field is mapped."""
        details = parse_volume(VOLUME)

        assert details.title == "Piranesi"
        assert details.author == "Susanna Clarke"
        assert details.isbn == "9781635575996"
        assert details.cover_url == "https://books.google.com/thumb.jpg"
        assert details.published_year == 2020
        assert details.page_count == 272

    def test_sparse_volume(self):
        """Test missing fields."""
        details = parse_volume({"volumeInfo": {"title": "Bare"}})

        assert details.author == "Unknown Author"
        assert details.isbn is None
        assert details.cover_url is None
        assert details.published_year is None

    def test_to_book_result(self):
        """Test conversion to a search result."""
        result = parse_volume(VOLUME).to_book_result()

        assert result.title == "Piranesi"
        assert result.total_pages == 272
        assert result.genres == ["Fiction"]
        assert result.ol_id is None


class TestGoogleBooksClient:
    """Tests for GoogleBooksClient."""

    def test_strict_query_first(self, client):
        """Test the intitle/inauthor query."""
        client._session.get.return_value = make_response([VOLUME])

        details = client.fetch_book_details("Piranesi", "Susanna Clarke")

        assert details.title == "Piranesi"
        _, kwargs = client._session.get.call_args
        assert kwargs["params"]["q"] == "intitle:Piranesi inauthor:Susanna Clarke"
        assert kwargs["params"]["key"] == "key-123"
        assert client._session.get.call_count == 1

    def test_falls_back_to_loose_query(self, client):
        """Test the plain query when the strict one finds nothing."""
        client._session.get.side_effect = [make_response(None), make_response([VOLUME])]

        details = client.fetch_book_details("Piranesi (A Novel of Many Halls)", "Susanna Clarke")

        assert details.title == "Piranesi"
        _, kwargs = client._session.get.call_args
        assert kwargs["params"]["q"] == "Piranesi Susanna Clarke"

    def test_nothing_found(self, client):
        """Test no match on either query."""
        client._session.get.return_value = make_response([])

        assert client.fetch_book_details("Nothing", "Nobody") is None

    def test_genre_and_author_search(self, client):
        """Test the subject and inauthor queries."""
        client._session.get.return_value = make_response([VOLUME, VOLUME])

        assert len(client.search_by_genre("Fantasy", 10)) == 2
        _, kwargs = client._session.get.call_args
        assert kwargs["params"]["q"] == "subject:Fantasy"
        assert kwargs["params"]["orderBy"] == "relevance"
        assert kwargs["params"]["maxResults"] == 10

        client.search_by_author("Susanna Clarke")
        _, kwargs = client._session.get.call_args
        assert kwargs["params"]["q"] == "inauthor:Susanna Clarke"

    def test_connection_error(self, client):
        """Test network failures are wrapped."""
        client._session.get.side_effect = requests.exceptions.ConnectionError("down")

        with pytest.raises(MetadataLookupError):
            client.search("x")


class TestBookDetailsService:
    """Tests for BookDetailsService."""

    @pytest.fixture
    def google(self):
        return MagicMock()

    @pytest.fixture
    def openlibrary(self):
        return MagicMock()

    @pytest.fixture
    def service(self, google, openlibrary):
        return BookDetailsService(google=google, openlibrary=openlibrary, cache_ttl=3600)

    def test_google_rating_used(self, service, google, openlibrary):
        """Test Open Library is not asked when Google has a rating."""
        google.fetch_book_details.return_value = BookDetails(
            title="T", author="A", average_rating=4.0, ratings_count=10
        )

        details = service.get_details("T", "A")

        assert details.average_rating == 4.0
        openlibrary.fetch_rating.assert_not_called()

    def test_openlibrary_rating_fills_gap(self, service, google, openlibrary):
        """Test the Open Library rating replaces a missing one."""
        google.fetch_book_details.return_value = BookDetails(
            title="T", author="A", description="Desc"
        )
        openlibrary.fetch_rating.return_value = CommunityRating(average=3.87, count=55)

        details = service.get_details("T", "A")

        assert details.description == "Desc"
        assert details.average_rating == 3.87
        assert details.ratings_count == 55

    def test_openlibrary_only(self, service, google, openlibrary):
        """Test a minimal record when Google finds nothing."""
        google.fetch_book_details.return_value = None
        openlibrary.fetch_rating.return_value = CommunityRating(average=4.1, count=9)

        details = service.get_details("T", "A")

        assert details.title == "T"
        assert details.description is None
        assert details.average_rating == 4.1

    def test_failures_degrade_to_none(self, service, google, openlibrary):
        """Test lookup failures never raise."""
        google.fetch_book_details.side_effect = MetadataLookupError("down")
        openlibrary.fetch_rating.side_effect = MetadataLookupError("down")

        assert service.get_details("T", "A") is None

    def test_results_cached(self, service, google, openlibrary):
        """Test repeated lookups hit the cache, ignoring case."""
        google.fetch_book_details.return_value = BookDetails(
            title="T", author="A", average_rating=4.0
        )

        service.get_details("T", "A")
        service.get_details("t", "a")
        assert google.fetch_book_details.call_count == 1

        service.clear_cache()
        service.get_details("T", "A")
        assert google.fetch_book_details.call_count == 2

    def test_failed_lookup_not_cached(self, service, google, openlibrary):
        """Test a lookup that found nothing is retried on the next call."""
        google.fetch_book_details.side_effect = [
            MetadataLookupError("down"),
            BookDetails(title="T", author="A", average_rating=4.0),
        ]
        openlibrary.fetch_rating.return_value = None

        assert service.get_details("T", "A") is None
        details = service.get_details("T", "A")

        assert details.average_rating == 4.0
        assert google.fetch_book_details.call_count == 2

    def test_cache_disabled(self, google, openlibrary):
        """Test a TTL of 0 disables caching."""
        google.fetch_book_details.return_value = BookDetails(
            title="T", author="A", average_rating=4.0
        )
        service = BookDetailsService(google=google, openlibrary=openlibrary, cache_ttl=0)

        service.get_details("T", "A")
        service.get_details("T", "A")

        assert google.fetch_book_details.call_count == 2

    def test_empty_title(self, service, google):
        """Test nothing is looked up without a title."""
        assert service.get_details("") is None
        google.fetch_book_details.assert_not_called()
