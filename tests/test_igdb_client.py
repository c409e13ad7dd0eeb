from __future__ import annotations

import io
from urllib.error import HTTPError

import pytest

from errors import AuthFailure, CatalogUnavailable, CredentialsMissing
from igdb.client import IGDBClient, build_details_query, build_search_query
from igdb.credentials import CredentialStore
from igdb.models import GameRecord, upgrade_cover_url
from igdb.token import TokenProvider
from tests.app_helpers import (
    GAMES_URL,
    TOKEN_URL,
    FakeOpener,
    FakeResponse,
    igdb_game,
    token_payload,
)


def make_client(opener, *, client_id="client-1", client_secret="secret-1", user_agent="Game-Log/1.0 (tests)"):
    credentials = CredentialStore(client_id=client_id, client_secret=client_secret)
    tokens = TokenProvider(credentials, opener=opener)
    return IGDBClient(tokens, user_agent=user_agent, timeout=12.0, opener=opener)


def http_error(code: int, body: bytes = b"") -> HTTPError:
    return HTTPError(GAMES_URL, code, "error", hdrs=None, fp=io.BytesIO(body))


def test_search_sends_query_and_normalizes_results():
    opener = FakeOpener(
        {
            TOKEN_URL: [token_payload("tok")],
            GAMES_URL: [[igdb_game(), igdb_game(1943, "The Witcher 2", cover=None)]],
        }
    )
    client = make_client(opener)

    games = client.search("witcher", limit=10)

    request, timeout = opener.calls[-1]
    assert timeout == 12.0
    assert request.full_url == GAMES_URL
    assert request.data.decode("utf-8") == (
        'search "witcher"; fields id,name,summary,first_release_date,'
        'platforms.name,genres.name,cover.url; limit 10;'
    )
    assert request.get_header("Client-id") == "client-1"
    assert request.get_header("Authorization") == "Bearer tok"
    assert request.get_header("Accept") == "application/json"
    assert request.get_header("User-agent") == "Game-Log/1.0 (tests)"

    assert [game.external_id for game in games] == [1942, 1943]
    witcher = games[0]
    assert witcher.name == "The Witcher 3: Wild Hunt"
    assert witcher.release_date == "2015-05-19"
    assert witcher.platforms == ["PC (Microsoft Windows)", "PlayStation 4"]
    assert witcher.genres == ["Role-playing (RPG)"]
    assert witcher.cover_url == (
        "https://images.igdb.com/igdb/image/upload/t_cover_big/co1wyy.jpg"
    )
    assert games[1].cover_url == ""


def test_search_truncates_to_limit_and_reuses_token():
    payload = [igdb_game(game_id) for game_id in range(1, 6)]
    opener = FakeOpener(
        {TOKEN_URL: [token_payload()], GAMES_URL: [payload, payload]}
    )
    client = make_client(opener)

    assert len(client.search("mario", limit=3)) == 3
    assert len(client.search("mario", limit=2)) == 2
    assert opener.count(TOKEN_URL) == 1
    assert opener.count(GAMES_URL) == 2


@pytest.mark.parametrize("query", ["", "   ", None])
def test_blank_query_returns_empty_without_network(query):
    opener = FakeOpener()
    client = make_client(opener)

    assert client.search(query) == []
    assert opener.calls == []


def test_missing_credentials_are_reported_before_any_request():
    opener = FakeOpener()
    client = make_client(opener, client_id="", client_secret="")

    with pytest.raises(CredentialsMissing):
        client.search("zelda")
    assert opener.calls == []


def test_transport_error_is_catalog_unavailable():
    opener = FakeOpener(
        {TOKEN_URL: [token_payload()], GAMES_URL: [TimeoutError("timed out")]}
    )
    client = make_client(opener)

    with pytest.raises(CatalogUnavailable):
        client.search("zelda")


def test_invalid_json_is_catalog_unavailable():
    opener = FakeOpener(
        {TOKEN_URL: [token_payload()], GAMES_URL: [FakeResponse(b"<html>oops</html>")]}
    )
    client = make_client(opener)

    with pytest.raises(CatalogUnavailable) as excinfo:
        client.search("zelda")
    assert excinfo.value.message == "Invalid JSON response from IGDB API"


def test_empty_body_is_catalog_unavailable_not_no_results():
    opener = FakeOpener(
        {TOKEN_URL: [token_payload()], GAMES_URL: [FakeResponse(b""), FakeResponse(b"")]}
    )
    client = make_client(opener)

    with pytest.raises(CatalogUnavailable) as excinfo:
        client.search("zelda", 5)
    assert excinfo.value.message == "Invalid JSON response from IGDB API"

    result = client.search_result("zelda", 5)
    assert result.ok is False
    assert result.games == []


@pytest.mark.parametrize("code", [401, 403])
def test_rejected_token_is_auth_failure(code):
    opener = FakeOpener(
        {TOKEN_URL: [token_payload()], GAMES_URL: [http_error(code, b'{"message":"Authorization Failure"}')]}
    )
    client = make_client(opener)

    with pytest.raises(AuthFailure):
        client.search("zelda")


def test_server_error_is_catalog_unavailable():
    opener = FakeOpener(
        {TOKEN_URL: [token_payload()], GAMES_URL: [http_error(500)]}
    )
    client = make_client(opener)

    with pytest.raises(CatalogUnavailable):
        client.search("zelda")


def test_search_result_distinguishes_failure_from_no_results():
    opener = FakeOpener(
        {TOKEN_URL: [token_payload()], GAMES_URL: [[], OSError("down")]}
    )
    client = make_client(opener)

    empty = client.search_result("nothing matches")
    assert empty.ok is True
    assert empty.games == []

    failed = client.search_result("zelda")
    assert failed.ok is False
    assert failed.games == []
    assert failed.error == "IGDB catalog unavailable"


def test_get_details_returns_record_or_none():
    opener = FakeOpener(
        {
            TOKEN_URL: [token_payload()],
            GAMES_URL: [[igdb_game(1942)], [], OSError("down")],
        }
    )
    client = make_client(opener)

    record = client.get_details(1942)
    assert record is not None
    assert record.external_id == 1942
    assert opener.calls[-1][0].data.decode("utf-8").endswith("where id = 1942;")

    assert client.get_details(1942) is None
    assert client.get_details(1942) is None
    assert client.get_details("not-a-number") is None


def test_items_with_missing_keys_use_defaults():
    assert GameRecord.from_igdb({}).external_id == 0
    assert GameRecord.from_igdb({"id": -5}).external_id == 0
    record = GameRecord.from_igdb({"id": 7})

    assert record == GameRecord(external_id=7)
    assert record.to_dict() == {
        "id": 7,
        "name": "",
        "summary": "",
        "release_date": "",
        "cover_url": "",
        "platforms": [],
        "genres": [],
    }


def test_unexpected_payload_shape_yields_no_games():
    opener = FakeOpener(
        {TOKEN_URL: [token_payload()], GAMES_URL: [{"message": "odd"}]}
    )
    client = make_client(opener)

    assert client.search("zelda") == []


def test_query_builders_escape_search_text():
    assert build_search_query('say "hi"', 5) == (
        'search "say \\"hi\\""; fields id,name,summary,first_release_date,'
        'platforms.name,genres.name,cover.url; limit 5;'
    )
    assert build_details_query(99).endswith("where id = 99;")


@pytest.mark.parametrize(
    "value, expected",
    [
        ("//images.igdb.com/igdb/image/upload/t_thumb/a.jpg", "https://images.igdb.com/igdb/image/upload/t_cover_big/a.jpg"),
        ("https://images.igdb.com/igdb/image/upload/t_thumb/a.png", "https://images.igdb.com/igdb/image/upload/t_cover_big/a.png"),
        ("", ""),
        (None, ""),
    ],
)
def test_upgrade_cover_url(value, expected):
    assert upgrade_cover_url(value) == expected
