"""IGDB catalog client: search and detail queries."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping
from urllib.error import HTTPError
from urllib.request import Request, urlopen

from errors import AuthFailure, CatalogUnavailable, GameLogError
from helpers import _coerce_int
from igdb.models import GameRecord, SearchResult
from igdb.token import TokenProvider

logger = logging.getLogger(__name__)


__all__ = [
    "GAME_FIELDS",
    "IGDBClient",
    "build_details_query",
    "build_search_query",
]


GAME_FIELDS = (
    "id,name,summary,first_release_date,"
    "platforms.name,genres.name,cover.url"
)

_AUTH_STATUS_CODES = {401, 403}


def _escape_search_text(query: str) -> str:
    return query.replace("\\", "\\\\").replace('"', '\\"')


def build_search_query(query: str, limit: int) -> str:
    """Return the IGDB query combining a search clause and field projection."""

    return (
        f'search "{_escape_search_text(query)}"; '
        f"fields {GAME_FIELDS}; "
        f"limit {int(limit)};"
    )


def build_details_query(game_id: int) -> str:
    return f"fields {GAME_FIELDS}; where id = {int(game_id)};"


class IGDBClient:
    """Run catalog queries with a bearer token from a :class:`TokenProvider`."""

    BASE_URL = "https://api.igdb.com/v4"

    def __init__(
        self,
        tokens: TokenProvider,
        *,
        user_agent: str = "",
        timeout: float = 30.0,
        request_factory: Callable[..., Any] | None = None,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        self._tokens = tokens
        self._user_agent = (user_agent or "").strip()
        self._timeout = timeout
        self._request_factory = request_factory or Request
        self._opener = opener or urlopen

    def search(self, query: str, limit: int = 20) -> list[GameRecord]:
        """Return up to ``limit`` normalized games matching ``query``.

        Raises :class:`~errors.CredentialsMissing`, :class:`~errors.AuthFailure`
        or :class:`~errors.CatalogUnavailable`; nothing is retried.
        """

        text = (query or "").strip()
        if not text:
            return []
        sanitized_limit = max(1, int(limit))
        payload = self._post("games", build_search_query(text, sanitized_limit))
        return self._normalize_games(payload)[:sanitized_limit]

    def search_result(self, query: str, limit: int = 20) -> SearchResult:
        """Return a tagged result instead of raising on catalog failures."""

        try:
            return SearchResult.success(self.search(query, limit))
        except GameLogError as exc:
            logger.warning("IGDB search for %r failed: %s", query, exc)
            return SearchResult.failure(exc.message)

    def get_details(self, game_id: int) -> GameRecord | None:
        """Return the game with ``game_id`` or ``None`` when missing or on error."""

        numeric_id = _coerce_int(game_id)
        if numeric_id is None or numeric_id <= 0:
            return None
        try:
            payload = self._post("games", build_details_query(numeric_id))
        except GameLogError as exc:
            logger.warning("IGDB detail lookup for %s failed: %s", numeric_id, exc)
            return None
        games = self._normalize_games(payload)
        return games[0] if games else None

    def normalize_game(self, item: Mapping[str, Any]) -> GameRecord | None:
        """Return a :class:`GameRecord` for one raw IGDB item."""

        if not isinstance(item, Mapping):
            return None
        return GameRecord.from_igdb(item)

    def _normalize_games(self, payload: Any) -> list[GameRecord]:
        if not isinstance(payload, list):
            if payload:
                logger.warning(
                    "Unexpected IGDB payload type: %s", type(payload).__name__
                )
            return []
        results: list[GameRecord] = []
        for item in payload:
            record = self.normalize_game(item)
            if record is not None:
                results.append(record)
        return results

    def _apply_headers(self, request: Any, client_id: str, access_token: str) -> None:
        request.add_header("Client-ID", client_id)
        request.add_header("Authorization", f"Bearer {access_token}")
        request.add_header("Accept", "application/json")
        request.add_header("Content-Type", "text/plain")
        if self._user_agent:
            request.add_header("User-Agent", self._user_agent)

    def _post(self, endpoint: str, query: str) -> Any:
        access_token = self._tokens.get_token()
        request = self._request_factory(
            f"{self.BASE_URL}/{endpoint}",
            data=query.encode("utf-8"),
            method="POST",
        )
        self._apply_headers(request, self._tokens.client_id, access_token)
        logger.debug("IGDB %s query: %s", endpoint, query)

        try:
            with self._opener(request, timeout=self._timeout) as response:
                body = response.read()
        except HTTPError as exc:
            message = _format_http_error(f"IGDB {endpoint} request failed", exc)
            logger.warning(message)
            if exc.code in _AUTH_STATUS_CODES:
                raise AuthFailure("IGDB rejected the access token") from exc
            raise CatalogUnavailable() from exc
        except Exception as exc:
            logger.warning("IGDB %s request failed: %s", endpoint, exc)
            raise CatalogUnavailable() from exc

        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            logger.warning("Invalid JSON response from IGDB %s endpoint", endpoint)
            raise CatalogUnavailable("Invalid JSON response from IGDB API") from exc


def _format_http_error(prefix: str, error: HTTPError) -> str:
    message = f"{prefix}: {error.code}"
    error_message = ""
    try:
        error_body = error.read()
    except Exception:  # pragma: no cover - best effort to capture error body
        error_body = b""
    if error_body:
        error_message = error_body.decode("utf-8", errors="replace").strip()
    if not error_message and error.reason:
        error_message = str(error.reason)
    if error_message:
        message = f"{message} {error_message}"
    return message
