"""Session login flow and the collection overview."""
from __future__ import annotations

from typing import Any, Mapping

from flask import (
    Blueprint,
    jsonify,
    redirect,
    request,
    session,
    url_for,
)

web_blueprint = Blueprint("web", __name__)

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    """Provide shared state required by the session routes."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"web routes missing context value: {key}")
    return _context[key]


def _get_app_password() -> str:
    return _ctx("app_password")


@web_blueprint.before_app_request
def require_login():
    if request.endpoint in ("web.login", "static"):
        return None
    if session.get("authenticated"):
        return None
    if request.path.startswith("/api/"):
        return jsonify({"error": "Authentication required"}), 401
    return redirect(url_for("web.login"))


@web_blueprint.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        password = request.form.get("password")
        if password is None:
            data = request.get_json(silent=True) or {}
            password = data.get("password") if isinstance(data, Mapping) else None
        if password == _get_app_password():
            session["authenticated"] = True
            return redirect(url_for("web.index"))
        return jsonify({"error": "Invalid password"}), 401
    return jsonify({"authenticated": bool(session.get("authenticated"))})


@web_blueprint.route("/logout")
def logout():
    session.clear()
    return redirect(url_for("web.login"))


@web_blueprint.route("/")
def index():
    store = _ctx("store")
    counts = store.status_counts()
    return jsonify(
        {
            "total": counts["total"],
            "statuses": counts["statuses"],
            "unassigned": counts["unassigned"],
            "igdb_configured": _ctx("credentials").is_configured(),
        }
    )
