"""Typed records produced by the IGDB catalog client."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from helpers import (
    _coerce_int,
    _format_first_release_date,
    _normalize_lookup_name,
    _parse_name_list,
)

COVER_THUMBNAIL_TOKEN = "t_thumb"
COVER_LARGE_TOKEN = "t_cover_big"


def upgrade_cover_url(value: Any) -> str:
    """Return a full-size, scheme-qualified cover URL for an IGDB ``cover.url``."""

    url = _normalize_lookup_name(value)
    if not url:
        return ""
    url = url.replace(COVER_THUMBNAIL_TOKEN, COVER_LARGE_TOKEN)
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"https://{url.lstrip('/')}"


@dataclass(frozen=True)
class GameRecord:
    """Normalized catalog entry returned by searches and detail lookups."""

    external_id: int = 0
    name: str = ""
    summary: str = ""
    release_date: str = ""
    cover_url: str = ""
    platforms: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)

    @classmethod
    def from_igdb(cls, item: Mapping[str, Any]) -> "GameRecord":
        """Build a record from a raw ``/games`` item; missing keys use defaults."""

        external_id = _coerce_int(item.get("id"), 0) or 0
        cover = item.get("cover")
        cover_url = ""
        if isinstance(cover, Mapping):
            cover_url = upgrade_cover_url(cover.get("url"))
        return cls(
            external_id=max(external_id, 0),
            name=_normalize_lookup_name(item.get("name")),
            summary=_normalize_lookup_name(item.get("summary")),
            release_date=_format_first_release_date(item.get("first_release_date")),
            cover_url=cover_url,
            platforms=_parse_name_list(item.get("platforms")),
            genres=_parse_name_list(item.get("genres")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON shape exchanged with the UI (``id`` not ``external_id``)."""

        data = asdict(self)
        data["id"] = data.pop("external_id")
        return data


@dataclass(frozen=True)
class SearchResult:
    """Tagged outcome of a catalog search.

    ``ok`` is ``False`` when the catalog could not be queried; ``games`` is
    then empty and ``error`` carries the reason, so callers can tell "no
    results" apart from "service down".
    """

    ok: bool
    games: list[GameRecord] = field(default_factory=list)
    error: str = ""

    @classmethod
    def success(cls, games: list[GameRecord]) -> "SearchResult":
        return cls(ok=True, games=list(games))

    @classmethod
    def failure(cls, reason: str) -> "SearchResult":
        return cls(ok=False, error=reason)


__all__ = [
    "COVER_LARGE_TOKEN",
    "COVER_THUMBNAIL_TOKEN",
    "GameRecord",
    "SearchResult",
    "upgrade_cover_url",
]
