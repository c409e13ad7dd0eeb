"""Catalog search, import and collection management API routes."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Blueprint, Response, jsonify, request

from collection import reports
from collection.store import EntryNotFound, UnknownStatus
from helpers import _coerce_int
from routes.api_utils import BadRequestError, NotFoundError, handle_api_errors

logger = logging.getLogger(__name__)

games_blueprint = Blueprint("games", __name__)

_context: dict[str, Any] = {}

_BULK_ACTIONS = ("set_status", "delete")


def configure(context: Mapping[str, Any]) -> None:
    """Provide shared state required by the collection endpoints."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"games routes missing context value: {key}")
    return _context[key]


def _request_values() -> Mapping[str, Any]:
    payload = request.get_json(silent=True)
    if isinstance(payload, Mapping):
        return payload
    if request.method == "GET":
        return request.args
    return request.form


def _resolve_limit(raw_limit: Any) -> int:
    default_limit = int(_ctx("search_default_limit"))
    max_limit = int(_ctx("search_max_limit"))
    limit = _coerce_int(raw_limit, default_limit)
    if limit is None:
        limit = default_limit
    return max(1, min(limit, max_limit))


def _parse_entry_ids(raw_ids: Any) -> list[int]:
    if isinstance(raw_ids, (str, bytes)) or not isinstance(raw_ids, (list, tuple)):
        raise BadRequestError("ids must be a list of game ids")
    entry_ids: list[int] = []
    for value in raw_ids:
        entry_id = _coerce_int(value)
        if entry_id is None or entry_id <= 0:
            raise BadRequestError(f"invalid game id: {value!r}")
        entry_ids.append(entry_id)
    if not entry_ids:
        raise BadRequestError("No games selected")
    return entry_ids


def _entry_payload(entry) -> dict[str, Any]:
    data = entry.to_dict()
    cover = None
    if entry.cover_asset_id is not None:
        asset = _ctx("store").get_asset(entry.cover_asset_id)
        if asset is not None:
            cover = asset.to_dict()
    data["cover"] = cover
    return data


@games_blueprint.route("/api/search", methods=["GET", "POST"])
@handle_api_errors
def api_search():
    values = _request_values()
    raw_query = values.get("query")
    if raw_query is None:
        raw_query = values.get("q")
    query = str(raw_query).strip() if raw_query is not None else ""
    if not query:
        raise BadRequestError("Search query is required")
    limit = _resolve_limit(values.get("limit"))

    client = _ctx("igdb_client")
    if _ctx("search_errors_as_empty"):
        result = client.search_result(query, limit)
        return jsonify(
            {
                "ok": result.ok,
                "games": [game.to_dict() for game in result.games],
                "count": len(result.games),
                "limit": limit,
                "error": result.error or None,
            }
        )

    games = client.search(query, limit)
    return jsonify(
        {
            "ok": True,
            "games": [game.to_dict() for game in games],
            "count": len(games),
            "limit": limit,
        }
    )


@games_blueprint.route("/api/games", methods=["POST"])
@handle_api_errors
def api_add_game():
    values = _request_values()
    raw_game = values.get("game_data")
    status = values.get("game_status")
    result = _ctx("pipeline").add_game(raw_game, status if status else None)
    return (
        jsonify(
            {
                "message": "Game added successfully",
                "id": result.id,
                "edit_url": result.edit_ref,
                "status": result.status,
                "cover_asset_id": result.cover_asset_id,
            }
        ),
        201,
    )


@games_blueprint.route("/api/games", methods=["GET"])
@handle_api_errors
def api_list_games():
    status = (request.args.get("status") or "").strip() or None
    entries = _ctx("store").list_entries(status)
    return jsonify(
        {
            "games": [entry.to_dict() for entry in entries],
            "count": len(entries),
            "status": status,
        }
    )


@games_blueprint.route("/api/games/<int:entry_id>", methods=["GET"])
@handle_api_errors
def api_get_game(entry_id: int):
    entry = _ctx("store").get(entry_id)
    if entry is None:
        raise NotFoundError("Game not found")
    return jsonify(_entry_payload(entry))


@games_blueprint.route("/api/games/<int:entry_id>", methods=["PATCH"])
@handle_api_errors
def api_update_game(entry_id: int):
    data = request.get_json(silent=True)
    if not isinstance(data, Mapping):
        raise BadRequestError("JSON object body is required")

    store = _ctx("store")
    if store.get(entry_id) is None:
        raise NotFoundError("Game not found")

    try:
        if "status" in data:
            store.set_status(entry_id, str(data.get("status") or ""))
        if "rating" in data:
            store.set_rating(entry_id, data.get("rating"))
        if "release_date" in data:
            store.set_release_date(entry_id, str(data.get("release_date") or "").strip())
    except UnknownStatus as exc:
        raise BadRequestError(str(exc)) from exc
    except EntryNotFound as exc:
        raise NotFoundError("Game not found") from exc

    return jsonify(_entry_payload(store.get(entry_id)))


@games_blueprint.route("/api/games/<int:entry_id>", methods=["DELETE"])
@handle_api_errors
def api_delete_game(entry_id: int):
    try:
        assets = _ctx("store").delete(entry_id)
    except EntryNotFound as exc:
        raise NotFoundError("Game not found") from exc
    removed_files = _ctx("asset_store").release(assets)
    logger.info(
        "Deleted entry %s (%d asset files removed)", entry_id, removed_files
    )
    return jsonify({"status": "ok", "deleted": 1, "removed_files": removed_files})


@games_blueprint.route("/api/games/bulk", methods=["POST"])
@handle_api_errors
def api_bulk_games():
    data = request.get_json(silent=True)
    if not isinstance(data, Mapping):
        raise BadRequestError("JSON object body is required")
    action = str(data.get("action") or "").strip()
    if action not in _BULK_ACTIONS:
        raise BadRequestError(f"unknown action: {action!r}")
    entry_ids = _parse_entry_ids(data.get("ids"))
    store = _ctx("store")

    if action == "set_status":
        try:
            updated = store.bulk_set_status(entry_ids, str(data.get("status") or ""))
        except UnknownStatus as exc:
            raise BadRequestError(str(exc)) from exc
        return jsonify({"status": "ok", "action": action, "updated": updated})

    deleted, assets = store.bulk_delete(entry_ids)
    removed_files = _ctx("asset_store").release(assets)
    return jsonify(
        {
            "status": "ok",
            "action": action,
            "deleted": deleted,
            "removed_files": removed_files,
        }
    )


@games_blueprint.route("/api/games/export", methods=["GET"])
@handle_api_errors
def api_export_games():
    status = (request.args.get("status") or "").strip() or None
    csv_text = reports.export_csv(_ctx("store").list_entries(status))
    return Response(
        csv_text,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=game-log.csv"},
    )


@games_blueprint.route("/api/stats", methods=["GET"])
@handle_api_errors
def api_stats():
    store = _ctx("store")
    counts = store.status_counts()
    counts["ratings"] = reports.status_summary(store.list_entries())
    return jsonify(counts)


@games_blueprint.route("/api/statuses", methods=["GET"])
@handle_api_errors
def api_statuses():
    terms = _ctx("store").list_statuses()
    return jsonify({"statuses": [term.to_dict() for term in terms]})


__all__ = ["configure", "games_blueprint"]
