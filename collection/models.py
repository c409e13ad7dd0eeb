"""Records persisted by the collection store."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping

STATUS_WISHLIST = "wishlist"
STATUS_BACKLOG = "backlog"
STATUS_PLAYING = "playing"
STATUS_PLAYED = "played"

DEFAULT_STATUS = STATUS_WISHLIST

# slug -> (name, description)
DEFAULT_STATUS_TERMS: dict[str, tuple[str, str]] = {
    STATUS_PLAYED: ("Played", "Games you have completed"),
    STATUS_PLAYING: ("Playing", "Games you are currently playing"),
    STATUS_BACKLOG: ("Backlog", "Games you own but haven't started"),
    STATUS_WISHLIST: ("Wishlist", "Games you want to play"),
}

RATING_MIN = 1.0
RATING_MAX = 10.0


@dataclass(frozen=True)
class StatusTerm:
    id: int
    slug: str
    name: str
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AssetRef:
    """Reference to a stored cover image."""

    id: int
    entry_id: int | None
    filename: str
    path: str
    mime_type: str = ""
    alt_text: str = ""
    width: int | None = None
    height: int | None = None
    thumbnail_path: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AssetRef":
        return cls(
            id=int(row["id"]),
            entry_id=row.get("game_id"),
            filename=row.get("filename") or "",
            path=row.get("path") or "",
            mime_type=row.get("mime_type") or "",
            alt_text=row.get("alt_text") or "",
            width=row.get("width"),
            height=row.get("height"),
            thumbnail_path=row.get("thumbnail_path") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CollectionEntry:
    id: int
    title: str
    external_id: int
    release_date: str = ""
    status: str = DEFAULT_STATUS
    status_name: str = ""
    cover_asset_id: int | None = None
    rating: float | None = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CollectionEntry":
        rating = row.get("rating")
        return cls(
            id=int(row["id"]),
            title=row.get("title") or "",
            external_id=int(row.get("external_id") or 0),
            release_date=row.get("release_date") or "",
            status=row.get("status_slug") or "",
            status_name=row.get("status_name") or "",
            cover_asset_id=row.get("cover_asset_id"),
            rating=float(rating) if rating is not None else None,
            created_at=row.get("created_at") or "",
            updated_at=row.get("updated_at") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def sanitize_rating(value: Any) -> float | None:
    """Return ``value`` as a float within the rating range, else ``None``."""

    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if RATING_MIN <= numeric <= RATING_MAX:
        return numeric
    return None


__all__ = [
    "AssetRef",
    "CollectionEntry",
    "DEFAULT_STATUS",
    "DEFAULT_STATUS_TERMS",
    "RATING_MAX",
    "RATING_MIN",
    "STATUS_BACKLOG",
    "STATUS_PLAYED",
    "STATUS_PLAYING",
    "STATUS_WISHLIST",
    "StatusTerm",
    "sanitize_rating",
]
