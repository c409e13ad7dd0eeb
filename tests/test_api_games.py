from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from tests.app_helpers import (
    COVER_URL,
    GAMES_URL,
    TOKEN_URL,
    FakeOpener,
    authenticate,
    igdb_game,
    load_app,
    make_image_bytes,
    services,
    token_payload,
)


def add_game(client, *, game_id=1942, name="The Witcher 3: Wild Hunt", status=None, cover_url=""):
    payload = {
        "game_data": {
            "id": game_id,
            "name": name,
            "release_date": "2015-05-19",
            "cover_url": cover_url,
        }
    }
    if status is not None:
        payload["game_status"] = status
    return client.post("/api/games", json=payload)


def test_api_requires_authentication(app):
    anonymous = app.test_client()

    resp = anonymous.get("/api/games")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Authentication required"

    resp = anonymous.get("/")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/login")


def test_login_and_logout(app):
    web_client = app.test_client()

    resp = web_client.post("/login", data={"password": "wrong"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid password"

    resp = web_client.post("/login", data={"password": "letmein"})
    assert resp.status_code == 302
    with web_client.session_transaction() as sess:
        assert sess["authenticated"] is True

    summary = web_client.get("/")
    assert summary.status_code == 200
    assert summary.get_json()["total"] == 0
    assert summary.get_json()["igdb_configured"] is True

    web_client.get("/logout")
    assert web_client.get("/api/games").status_code == 401


def test_search_blank_query_is_bad_request(client, opener):
    resp = client.get("/api/search?query=%20%20")

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Search query is required"
    assert opener.calls == []


def test_search_returns_normalized_games(client, opener):
    opener.add(TOKEN_URL, token_payload())
    opener.add(GAMES_URL, [igdb_game()])

    resp = client.post("/api/search", json={"query": "witcher"})

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["ok"] is True
    assert data["count"] == 1
    assert data["limit"] == 20
    game = data["games"][0]
    assert game["id"] == 1942
    assert game["release_date"] == "2015-05-19"
    assert game["cover_url"] == COVER_URL
    assert "limit 20;" in opener.calls[-1][0].data.decode("utf-8")


def test_search_limit_is_clamped(client, opener):
    opener.add(TOKEN_URL, token_payload())
    opener.add(GAMES_URL, [], [])

    assert client.get("/api/search?query=mario&limit=500").get_json()["limit"] == 50
    assert client.get("/api/search?query=mario&limit=0").get_json()["limit"] == 1
    bodies = [request.data.decode("utf-8") for request, _ in opener.calls if request.full_url == GAMES_URL]
    assert bodies[0].endswith("limit 50;")
    assert bodies[1].endswith("limit 1;")


def test_search_without_credentials_explains_how_to_fix(tmp_path):
    opener = FakeOpener()
    flask_app = load_app(tmp_path, opener=opener, IGDB_CLIENT_ID="", IGDB_CLIENT_SECRET="")
    test_client = flask_app.test_client()
    authenticate(test_client)

    resp = test_client.get("/api/search?query=zelda")

    assert resp.status_code == 503
    assert resp.get_json()["error"] == (
        "IGDB API credentials are not configured. "
        "Please go to Settings to enter your API credentials."
    )
    assert opener.calls == []


def test_search_auth_failure_is_bad_gateway(client, opener):
    opener.add(TOKEN_URL, {"message": "invalid client secret"})

    resp = client.get("/api/search?query=zelda")

    assert resp.status_code == 502
    assert resp.get_json()["error"] == (
        "Failed to authenticate with IGDB API. Please check your credentials."
    )


def test_search_catalog_failure_is_reported(client, opener):
    opener.add(TOKEN_URL, token_payload())
    opener.add(GAMES_URL, OSError("network unreachable"))

    resp = client.get("/api/search?query=zelda")

    assert resp.status_code == 502
    assert resp.get_json()["code"] == "catalog_unavailable"
    assert "network unreachable" not in resp.get_json()["error"]


def test_search_errors_as_empty_list_when_configured(tmp_path):
    opener = FakeOpener({TOKEN_URL: [token_payload()], GAMES_URL: [OSError("down")]})
    flask_app = load_app(tmp_path, opener=opener, IGDB_SEARCH_ERRORS_AS_EMPTY=True)
    test_client = flask_app.test_client()
    authenticate(test_client)

    resp = test_client.get("/api/search?query=zelda")

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["ok"] is False
    assert data["games"] == []
    assert data["error"] == "IGDB catalog unavailable"


def test_add_game_returns_created_entry(client, opener):
    opener.add(COVER_URL, make_image_bytes())

    resp = add_game(client, status="playing", cover_url=COVER_URL)

    assert resp.status_code == 201
    data = resp.get_json()
    assert data["message"] == "Game added successfully"
    assert data["edit_url"] == f"/api/games/{data['id']}"
    assert data["status"] == "playing"

    detail = client.get(data["edit_url"]).get_json()
    assert detail["title"] == "The Witcher 3: Wild Hunt"
    assert detail["status"] == "playing"
    assert detail["cover"]["alt_text"] == "Cover art for The Witcher 3: Wild Hunt"


def test_add_game_accepts_escaped_form_payload(client):
    raw = '{\\"id\\": 7346, \\"name\\": \\"Breath of the Wild\\"}'

    resp = client.post("/api/games", data={"game_data": raw, "game_status": "backlog"})

    assert resp.status_code == 201
    assert resp.get_json()["status"] == "backlog"


def test_add_game_accepts_form_json_with_quoted_title(client):
    raw = json.dumps({"id": 43, "name": 'The "Quoted" Game', "summary": 'Says "hi"'})

    resp = client.post("/api/games", data={"game_data": raw})

    assert resp.status_code == 201
    detail = client.get(resp.get_json()["edit_url"]).get_json()
    assert detail["title"] == 'The "Quoted" Game'


def test_add_duplicate_game_conflicts(client):
    assert add_game(client).status_code == 201

    resp = add_game(client)

    assert resp.status_code == 409
    assert resp.get_json()["error"] == "Game already exists in your collection"
    assert client.get("/api/games").get_json()["count"] == 1


def test_add_game_rejects_malformed_data(client):
    resp = client.post("/api/games", data={"game_data": "{oops"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid game data format"

    resp = client.post("/api/games", json={})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Game data is required"


def test_list_games_filters_by_status(client):
    add_game(client, game_id=1, name="Zelda", status="played")
    add_game(client, game_id=2, name="Metroid", status="wishlist")

    everything = client.get("/api/games").get_json()
    assert [game["title"] for game in everything["games"]] == ["Metroid", "Zelda"]

    played = client.get("/api/games?status=played").get_json()
    assert [game["title"] for game in played["games"]] == ["Zelda"]


def test_get_missing_game_is_not_found(client):
    resp = client.get("/api/games/404")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Game not found"


def test_patch_updates_status_rating_and_release_date(client):
    entry_id = add_game(client).get_json()["id"]

    resp = client.patch(
        f"/api/games/{entry_id}",
        json={"status": "played", "rating": 9, "release_date": "2015-05-18"},
    )

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["status"] == "played"
    assert data["rating"] == 9.0
    assert data["release_date"] == "2015-05-18"

    cleared = client.patch(f"/api/games/{entry_id}", json={"rating": 42}).get_json()
    assert cleared["rating"] is None


def test_patch_unknown_status_is_bad_request(client):
    entry_id = add_game(client).get_json()["id"]

    resp = client.patch(f"/api/games/{entry_id}", json={"status": "abandoned"})

    assert resp.status_code == 400
    assert client.patch("/api/games/999", json={"status": "played"}).status_code == 404


def test_delete_game_removes_cover_file(client, opener, app):
    opener.add(COVER_URL, make_image_bytes())
    entry_id = add_game(client, cover_url=COVER_URL).get_json()["id"]
    cover = client.get(f"/api/games/{entry_id}").get_json()["cover"]
    assert Path(cover["path"]).exists()

    resp = client.delete(f"/api/games/{entry_id}")

    assert resp.status_code == 200
    assert resp.get_json()["removed_files"] == 2
    assert not Path(cover["path"]).exists()
    assert services(app)["store"].get_asset(cover["id"]) is None
    assert client.delete(f"/api/games/{entry_id}").status_code == 404


def test_bulk_set_status_and_delete(client):
    ids = [
        add_game(client, game_id=game_id, name=f"Game {game_id}").get_json()["id"]
        for game_id in (1, 2, 3)
    ]

    resp = client.post(
        "/api/games/bulk", json={"action": "set_status", "ids": ids[:2], "status": "backlog"}
    )
    assert resp.get_json()["updated"] == 2
    assert client.get("/api/games?status=backlog").get_json()["count"] == 2

    resp = client.post(
        "/api/games/bulk", json={"action": "set_status", "ids": ids, "status": "nope"}
    )
    assert resp.status_code == 400

    resp = client.post("/api/games/bulk", json={"action": "delete", "ids": ids[1:]})
    assert resp.get_json()["deleted"] == 2
    assert client.get("/api/games").get_json()["count"] == 1


def test_bulk_rejects_bad_requests(client):
    assert client.post("/api/games/bulk", json={"action": "explode", "ids": [1]}).status_code == 400
    assert client.post("/api/games/bulk", json={"action": "delete", "ids": []}).status_code == 400
    assert client.post("/api/games/bulk", json={"action": "delete", "ids": "1,2"}).status_code == 400
    assert client.post("/api/games/bulk", data="not json").status_code == 400


def test_export_csv(client):
    entry_id = add_game(client, status="played").get_json()["id"]
    client.patch(f"/api/games/{entry_id}", json={"rating": 8})

    resp = client.get("/api/games/export")

    assert resp.status_code == 200
    assert resp.mimetype == "text/csv"
    assert "attachment" in resp.headers["Content-Disposition"]
    rows = list(csv.DictReader(io.StringIO(resp.get_data(as_text=True))))
    assert len(rows) == 1
    assert rows[0]["Title"] == "The Witcher 3: Wild Hunt"
    assert rows[0]["IGDB ID"] == "1942"
    assert rows[0]["Status"] == "Played"
    assert float(rows[0]["Rating"]) == 8.0


def test_stats_and_statuses(client):
    first = add_game(client, game_id=1, name="A", status="played").get_json()["id"]
    add_game(client, game_id=2, name="B", status="played")
    client.patch(f"/api/games/{first}", json={"rating": 6})

    stats = client.get("/api/stats").get_json()
    assert stats["total"] == 2
    assert stats["statuses"]["played"] == 2
    assert stats["ratings"]["played"] == {"count": 2, "average_rating": 6.0}

    statuses = client.get("/api/statuses").get_json()["statuses"]
    assert {term["slug"] for term in statuses} >= {"played", "playing", "backlog", "wishlist"}


def test_error_responses_are_logged_with_context(client, caplog):
    with caplog.at_level("WARNING"):
        client.post("/api/games", data={"game_data": json.dumps({"id": 3, "name": ""})})

    assert any("Handled API error (400)" in record.getMessage() for record in caplog.records)
    message = next(r.getMessage() for r in caplog.records if "Handled API error (400)" in r.getMessage())
    assert '"user": "authenticated"' in message
