"""Unit tests for db.tmdb (TMDB client, retries and presentation helpers)."""

from datetime import date

import httpx
import pytest

from implementation.classes.errors import (
    ConfigurationError,
    MalformedResponseError,
    ProviderUnavailableError,
)
from db.tmdb import (
    PLACEHOLDER_POSTER,
    TMDBClient,
    _retry_after_seconds,
    check_tmdb,
    get_backdrop_url,
    get_poster_url,
    year_from_date,
)

SEARCH_PAYLOAD = {
    "page": 1,
    "results": [{"id": 597, "title": "Titanic", "overview": "Iceberg.", "release_date": "1997-11-18", "vote_count": 25000}],
    "total_pages": 1,
    "total_results": 1,
}


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch) -> None:
    monkeypatch.setattr("db.tmdb._RETRY_BACKOFF_BASE", 0.0)


def _client(handler, **kwargs) -> TMDBClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("access_token", "token")
    return TMDBClient(client=http, **kwargs)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_movies_sends_bearer_and_query() -> None:
    """search_movies should hit /search/movie with query, page, adult filter and language."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=SEARCH_PAYLOAD)

    response = await _client(handler).search_movies("ship iceberg", locale="tr-TR")
    assert response.results[0].id == 597
    assert seen["path"] == "/3/search/movie"
    assert seen["params"] == {"query": "ship iceberg", "page": "1", "include_adult": "false", "language": "tr-TR"}
    assert seen["auth"] == "Bearer token"


@pytest.mark.asyncio
async def test_api_key_is_sent_as_query_param() -> None:
    """Without a token the v3 api_key should travel as a query parameter."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=SEARCH_PAYLOAD)

    client = _client(handler, access_token="", api_key="v3key")
    await client.search_movies("titanic")
    assert seen["params"]["api_key"] == "v3key"
    assert seen["params"]["language"] == "en-US"
    assert seen["auth"] is None


@pytest.mark.asyncio
async def test_missing_credentials_is_configuration_error() -> None:
    """No token and no key should raise ConfigurationError before any request."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=SEARCH_PAYLOAD)

    client = _client(handler, access_token="", api_key="")
    assert not client.is_configured
    with pytest.raises(ConfigurationError):
        await client.search_movies("titanic")
    assert calls == []


@pytest.mark.asyncio
async def test_details_and_keywords() -> None:
    """Details and keywords should parse from their endpoints."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/3/movie/597/keywords":
            return httpx.Response(200, json={"id": 597, "keywords": [{"id": 1, "name": "iceberg"}, {"id": 2, "name": "ship"}]})
        if request.url.path == "/3/movie/597":
            return httpx.Response(200, json={"id": 597, "title": "Titanic", "runtime": 194, "poster_path": "/t.jpg"})
        return httpx.Response(404)

    client = _client(handler)
    assert await client.get_movie_keywords(597) == ["iceberg", "ship"]
    details = await client.get_movie_details(597)
    assert details.runtime == 194
    assert details.poster_path == "/t.jpg"


@pytest.mark.asyncio
async def test_popular_movies_endpoint() -> None:
    """get_popular_movies should hit /movie/popular."""
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json=SEARCH_PAYLOAD)

    response = await _client(handler).get_popular_movies()
    assert paths == ["/3/movie/popular"]
    assert response.total_results == 1


# ---------------------------------------------------------------------------
# Errors and retries
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_rate_limit_is_retried() -> None:
    """A 429 followed by success should return the successful payload."""
    responses = [httpx.Response(429, headers={"Retry-After": "0"}), httpx.Response(200, json=SEARCH_PAYLOAD)]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    response = await _client(handler).search_movies("titanic")
    assert response.results[0].title == "Titanic"
    assert responses == []


@pytest.mark.asyncio
async def test_rate_limit_exhaustion_is_provider_unavailable() -> None:
    """Persistent 429s should raise ProviderUnavailableError after the last attempt."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(429, headers={"Retry-After": "0"})

    with pytest.raises(ProviderUnavailableError):
        await _client(handler).search_movies("titanic")
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_transport_errors_are_retried_then_raised() -> None:
    """Connection errors should be retried and finally surface as ProviderUnavailableError."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailableError):
        await _client(handler).get_movie_keywords(597)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_transport_error_then_success() -> None:
    """One transient failure should not fail the request."""
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json=SEARCH_PAYLOAD)

    response = await _client(handler).search_movies("titanic")
    assert response.results
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_http_error_is_not_retried() -> None:
    """A 404 should raise ProviderUnavailableError without retrying."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(404, json={"status_message": "not found"})

    with pytest.raises(ProviderUnavailableError):
        await _client(handler).get_movie_details(1)
    assert len(calls) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [httpx.Response(200, text="<html>oops</html>"), httpx.Response(200, json={"results": "nope"})],
)
async def test_malformed_payload(response: httpx.Response) -> None:
    """Non-JSON or wrongly-shaped bodies should raise MalformedResponseError."""
    with pytest.raises(MalformedResponseError):
        await _client(lambda request: response).search_movies("titanic")


def test_retry_after_seconds() -> None:
    """Retry-After should be honored; garbage falls back to exponential back-off."""
    assert _retry_after_seconds(httpx.Response(429, headers={"Retry-After": "3"}), 1) == 3.0
    assert _retry_after_seconds(httpx.Response(429, headers={"Retry-After": "-5"}), 1) == 0.0
    assert _retry_after_seconds(httpx.Response(429, headers={"Retry-After": "soon"}), 1) == 0.0


@pytest.mark.asyncio
async def test_check_tmdb_not_configured() -> None:
    """The health check should report missing credentials without a request."""
    assert await check_tmdb() == "not configured"


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------

def test_poster_and_backdrop_urls() -> None:
    """Paths should expand to full image URLs; missing posters use the placeholder."""
    assert get_poster_url("/titanic.jpg") == "https://image.tmdb.org/t/p/w500/titanic.jpg"
    assert get_poster_url(None) == PLACEHOLDER_POSTER
    assert get_poster_url("") == PLACEHOLDER_POSTER
    assert get_backdrop_url("/b.jpg") == "https://image.tmdb.org/t/p/w1280/b.jpg"
    assert get_backdrop_url(None) is None


@pytest.mark.parametrize(
    ("release_date", "default", "expected"),
    [("1997-11-18", None, 1997), ("2006", None, 2006), ("", 1999, 1999), ("soon", 2001, 2001), (None, 1980, 1980)],
)
def test_year_from_date(release_date, default, expected: int) -> None:
    """The year comes from the first four digits, else the default."""
    assert year_from_date(release_date, default) == expected


def test_year_from_date_defaults_to_current_year() -> None:
    """Without a default an unparseable date should give the current year."""
    assert year_from_date("") == date.today().year
