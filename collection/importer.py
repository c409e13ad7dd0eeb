"""Import pipeline: turn a catalog search result into a collection entry."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from collection.models import DEFAULT_STATUS, DEFAULT_STATUS_TERMS
from collection.store import CollectionStore
from errors import DuplicateGame, MalformedPayload
from helpers import _coerce_int, sanitize_text_field, sanitize_url, status_slug
from media.covers import CoverFetcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportedGame:
    """Sanitized subset of a search result that becomes an entry."""

    external_id: int
    name: str
    release_date: str = ""
    cover_url: str = ""


@dataclass(frozen=True)
class ImportResult:
    id: int
    edit_ref: str
    status: str
    cover_asset_id: int | None = None


def parse_payload(raw: Any) -> Mapping[str, Any]:
    """Decode the add-request game data into a mapping.

    Transport layers sometimes deliver the JSON with every quote escaped
    (``{\\"id\\": 1}``); text that fails to decode as-is and carries escaped
    quotes is unescaped and decoded once more.
    """

    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedPayload() from exc
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedPayload("Game data is required")

    text = raw.strip()
    try:
        data = json.loads(text)
    except ValueError as exc:
        if '\\"' not in text:
            raise MalformedPayload() from exc
        try:
            data = json.loads(text.replace('\\"', '"'))
        except ValueError as retry_exc:
            raise MalformedPayload() from retry_exc
    if not isinstance(data, Mapping):
        raise MalformedPayload()
    return data


def sanitize_game_data(data: Mapping[str, Any]) -> ImportedGame:
    name = sanitize_text_field(data.get("name"))
    if not name:
        raise MalformedPayload("Game name is required")
    return ImportedGame(
        external_id=_coerce_int(data.get("id"), 0) or 0,
        name=name,
        release_date=sanitize_text_field(data.get("release_date")),
        cover_url=sanitize_url(data.get("cover_url")),
    )


class ImportPipeline:
    """Parse, deduplicate, create and decorate a collection entry.

    Steps run strictly in order; the status assignment and the cover download
    are best effort and never fail an import that created its entry.
    """

    def __init__(
        self,
        store: CollectionStore,
        covers: CoverFetcher,
        *,
        allow_new_statuses: bool = True,
        edit_ref_template: str = "/api/games/{id}",
    ) -> None:
        self._store = store
        self._covers = covers
        self._allow_new_statuses = allow_new_statuses
        self._edit_ref_template = edit_ref_template

    def add_game(self, raw: Any, status: str | None = None) -> ImportResult:
        game = sanitize_game_data(parse_payload(raw))

        existing = self._store.find_by_external_id(game.external_id)
        if existing is not None:
            logger.info(
                "Game %s (external id %s) already collected as entry %s",
                game.name,
                game.external_id,
                existing.id,
            )
            raise DuplicateGame(external_id=game.external_id)

        entry_id = self._store.create(
            title=game.name,
            external_id=game.external_id,
            release_date=game.release_date,
        )
        logger.info(
            "Created entry %s for %s (external id %s)",
            entry_id,
            game.name,
            game.external_id,
        )

        assigned_status = self._assign_status(entry_id, status)

        cover_asset_id = None
        if game.cover_url:
            asset = self._covers.fetch_cover(game.cover_url, entry_id, game.name)
            if asset is not None:
                try:
                    self._store.attach_asset(entry_id, asset)
                    cover_asset_id = asset.id
                except Exception:
                    logger.exception("Failed to attach cover to entry %s", entry_id)
            else:
                logger.info("Entry %s imported without cover", entry_id)

        return ImportResult(
            id=entry_id,
            edit_ref=self._edit_ref_template.format(id=entry_id),
            status=assigned_status,
            cover_asset_id=cover_asset_id,
        )

    def resolve_status(self, status: str | None) -> str:
        """Return the slug to assign for a caller-supplied status."""

        slug = status_slug(status) if status else ""
        if not slug:
            return DEFAULT_STATUS
        if slug in DEFAULT_STATUS_TERMS or self._allow_new_statuses:
            return slug
        if self._store.get_status_term(slug) is not None:
            return slug
        return DEFAULT_STATUS

    def _assign_status(self, entry_id: int, status: str | None) -> str:
        slug = self.resolve_status(status)
        try:
            term = self._store.ensure_status_term(slug)
            self._store.set_status(entry_id, term.slug)
        except Exception:
            logger.exception("Failed to assign status %r to entry %s", slug, entry_id)
            return ""
        return term.slug


__all__ = [
    "ImportPipeline",
    "ImportResult",
    "ImportedGame",
    "parse_payload",
    "sanitize_game_data",
]
