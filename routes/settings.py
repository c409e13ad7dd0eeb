"""IGDB credential settings API routes."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Blueprint, jsonify, request

from igdb.credentials import InvalidCredentialFormat
from routes.api_utils import BadRequestError, handle_api_errors

logger = logging.getLogger(__name__)

settings_blueprint = Blueprint("settings", __name__)

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    """Provide the credential store and token provider used by these routes."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"settings routes missing context value: {key}")
    return _context[key]


def _credentials_payload() -> dict[str, Any]:
    credentials = _ctx("credentials")
    client_id, client_secret = credentials.get()
    return {
        "client_id": client_id,
        "has_client_secret": bool(client_secret),
        "configured": bool(client_id and client_secret),
    }


@settings_blueprint.route("/api/settings/igdb", methods=["GET"])
@handle_api_errors
def api_get_igdb_settings():
    return jsonify(_credentials_payload())


@settings_blueprint.route("/api/settings/igdb", methods=["PUT"])
@handle_api_errors
def api_update_igdb_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, Mapping):
        raise BadRequestError("JSON object body is required")

    try:
        _ctx("credentials").save(data.get("client_id"), data.get("client_secret"))
    except InvalidCredentialFormat as exc:
        raise BadRequestError(str(exc), payload={"field": exc.field}) from exc

    # A token obtained with the previous credentials must not be reused.
    _ctx("tokens").reset()
    payload = _credentials_payload()
    payload["message"] = "Settings saved."
    return jsonify(payload)


__all__ = ["configure", "settings_blueprint"]
