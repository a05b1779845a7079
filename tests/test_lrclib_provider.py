"""Tests for the LRCLIB lyrics provider (HTTP session mocked)"""
from unittest.mock import MagicMock

import pytest
import requests

from providers.lrclib import LRCLIBProvider
from system_utils.cancellation import RequestToken
from system_utils.errors import ErrorCategory, ErrorSeverity, RequestCancelledError, ValidationError
from system_utils.state import make_song_key

SYNCED = "[00:10]Line A\n[00:20]Line B"


def make_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    session.get.return_value = make_response(200, [{"syncedLyrics": SYNCED, "plainLyrics": "Line A\nLine B"}])
    return session


@pytest.fixture
def provider(cache, errors, session, no_backoff):
    provider = LRCLIBProvider(cache, errors, session=session)
    provider.retry_config = no_backoff
    return provider


async def test_second_resolve_is_served_from_cache(provider, session):
    first = await provider.resolve("Artist", "Title")
    second = await provider.resolve("  artist ", "TITLE")

    assert first == SYNCED
    assert second == first
    assert session.get.call_count == 1


async def test_plain_lyrics_stored_alongside(provider):
    await provider.resolve("Artist", "Title")
    assert provider.get_plain_lyrics("Artist", "Title") == "Line A\nLine B"


async def test_search_terms_are_normalized(provider, session):
    await provider.resolve("Beyoncé & Jay-Z", "Crazy in Love (Remastered)")

    url = session.get.call_args.args[0]
    params = session.get.call_args.kwargs["params"]
    assert url.endswith("/search")
    assert params == {"artist_name": "Beyonce and Jay-Z", "track_name": "Crazy in Love"}


async def test_cache_hit_skips_network(provider, cache, session):
    cache.set(make_song_key("Artist", "Title"), "[00:01]cached")

    assert await provider.resolve("Artist", "Title") == "[00:01]cached"
    session.get.assert_not_called()


@pytest.mark.parametrize("artist, title", [("", "Title"), ("Artist", "   "), (None, "Title")])
async def test_missing_artist_or_title_is_rejected(provider, session, errors, artist, title):
    with pytest.raises(ValidationError):
        await provider.resolve(artist, title)
    session.get.assert_not_called()

    assert errors.current.category == ErrorCategory.LYRICS
    assert errors.current.retryable is False


@pytest.mark.parametrize("response", [
    make_response(404),
    make_response(200, []),
    make_response(200, [{"syncedLyrics": None, "plainLyrics": "only plain"}]),
    make_response(200, [{"syncedLyrics": "   "}]),
])
async def test_not_found_is_informational_and_not_retried(provider, session, errors, response):
    session.get.return_value = response

    assert await provider.resolve("Artist", "Title") is None
    assert session.get.call_count == 1
    assert errors.current.category == ErrorCategory.LYRICS
    assert errors.current.severity == ErrorSeverity.INFO
    assert errors.current.retryable is False


async def test_server_error_is_retried_then_reported_as_warning(provider, session, errors, cache):
    session.get.return_value = make_response(503)

    assert await provider.resolve("Artist", "Title") is None
    assert session.get.call_count == 3  # max_retries=2
    assert errors.current.severity == ErrorSeverity.WARNING
    assert errors.current.retryable is True
    assert cache.get(make_song_key("Artist", "Title")) is None


async def test_network_error_is_retried_then_reported_as_error(provider, session, errors):
    session.get.side_effect = requests.ConnectionError("offline")

    assert await provider.resolve("Artist", "Title") is None
    assert session.get.call_count == 3
    assert errors.current.severity == ErrorSeverity.ERROR
    assert errors.current.retryable is True


async def test_recovers_after_one_server_error(provider, session):
    session.get.side_effect = [
        make_response(500),
        make_response(200, [{"syncedLyrics": SYNCED}]),
    ]
    assert await provider.resolve("Artist", "Title") == SYNCED


async def test_cancelled_token_aborts_silently(provider, session, errors):
    token = RequestToken("getLyrics")
    token.cancel()

    with pytest.raises(RequestCancelledError):
        await provider.resolve("Artist", "Title", token)
    session.get.assert_not_called()
    assert errors.current is None
