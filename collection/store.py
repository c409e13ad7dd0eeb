"""SQLAlchemy-backed persistence for collection entries, statuses and assets."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Iterable

from sqlalchemy import (
    BigInteger,
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete as sa_delete,
    func,
    insert,
    select,
    update as sa_update,
)
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from collection.models import (
    DEFAULT_STATUS_TERMS,
    AssetRef,
    CollectionEntry,
    StatusTerm,
    sanitize_rating,
)
from db.utils import DatabaseEngine, db_lock
from errors import DuplicateGame, PersistenceFailure
from helpers import now_utc_iso, status_name_from_slug, status_slug

logger = logging.getLogger(__name__)

metadata = MetaData()

statuses_table = Table(
    "game_statuses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("slug", String(100), nullable=False, unique=True),
    Column("name", String(200), nullable=False),
    Column("description", Text, nullable=False, default=""),
)

games_table = Table(
    "games",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    # Unique index: the authoritative duplicate guard for concurrent imports.
    Column("external_id", BigInteger, nullable=False, unique=True),
    Column("release_date", String(32), nullable=False, default=""),
    Column("status_id", Integer, ForeignKey("game_statuses.id"), nullable=True),
    Column("cover_asset_id", Integer, nullable=True),
    Column("rating", Float, nullable=True),
    Column("created_at", String(64), nullable=False),
    Column("updated_at", String(64), nullable=False),
)

assets_table = Table(
    "assets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("game_id", Integer, ForeignKey("games.id"), nullable=True, index=True),
    Column("filename", String(255), nullable=False),
    Column("path", Text, nullable=False),
    Column("mime_type", String(100), nullable=False, default=""),
    Column("alt_text", Text, nullable=False, default=""),
    Column("width", Integer, nullable=True),
    Column("height", Integer, nullable=True),
    Column("thumbnail_path", Text, nullable=False, default=""),
    Column("created_at", String(64), nullable=False),
)

settings_table = Table(
    "settings",
    metadata,
    Column("key", String(100), primary_key=True),
    Column("value", Text, nullable=False, default=""),
    Column("updated_at", String(64), nullable=False),
)


class EntryNotFound(LookupError):
    """Raised when a collection entry id does not exist."""


class UnknownStatus(ValueError):
    """Raised when a status slug has no matching term."""


def _entry_select():
    return select(
        games_table,
        statuses_table.c.slug.label("status_slug"),
        statuses_table.c.name.label("status_name"),
    ).select_from(
        games_table.outerjoin(
            statuses_table, games_table.c.status_id == statuses_table.c.id
        )
    )


def _term_from_row(row: Any) -> StatusTerm:
    return StatusTerm(
        id=int(row["id"]),
        slug=row["slug"],
        name=row["name"],
        description=row["description"] or "",
    )


class CollectionStore:
    """Narrow persistence interface used by the import pipeline and routes."""

    def __init__(self, db: DatabaseEngine, *, lock: Lock | None = None) -> None:
        self._db = db
        self._lock = lock or db_lock

    @property
    def db(self) -> DatabaseEngine:
        return self._db

    # schema -----------------------------------------------------------------

    def create_schema(self) -> None:
        metadata.create_all(self._db.engine)

    def ensure_default_statuses(self) -> list[StatusTerm]:
        """Create the built-in status terms that do not exist yet."""

        return [
            self.ensure_status_term(slug, name=name, description=description)
            for slug, (name, description) in DEFAULT_STATUS_TERMS.items()
        ]

    # status terms -----------------------------------------------------------

    def list_statuses(self) -> list[StatusTerm]:
        with self._db.connect() as conn:
            rows = conn.execute(
                select(statuses_table).order_by(statuses_table.c.id)
            ).mappings().all()
        return [_term_from_row(row) for row in rows]

    def get_status_term(self, slug: str) -> StatusTerm | None:
        normalized = status_slug(slug)
        if not normalized:
            return None
        with self._db.connect() as conn:
            return self._get_status_term(conn, normalized)

    def _get_status_term(self, conn: Connection, slug: str) -> StatusTerm | None:
        row = conn.execute(
            select(statuses_table).where(statuses_table.c.slug == slug)
        ).mappings().first()
        return _term_from_row(row) if row is not None else None

    def ensure_status_term(
        self, slug: str, *, name: str | None = None, description: str = ""
    ) -> StatusTerm:
        """Return the term for ``slug``, creating it when absent."""

        normalized = status_slug(slug)
        if not normalized:
            raise UnknownStatus(f"invalid status: {slug!r}")
        with self._lock, self._db.begin() as conn:
            existing = self._get_status_term(conn, normalized)
            if existing is not None:
                return existing
            display_name = (name or "").strip() or status_name_from_slug(normalized)
            result = conn.execute(
                insert(statuses_table).values(
                    slug=normalized, name=display_name, description=description
                )
            )
            term_id = result.inserted_primary_key[0]
        logger.info("Created status term %s (%s)", normalized, display_name)
        return StatusTerm(
            id=int(term_id), slug=normalized, name=display_name, description=description
        )

    # entries ----------------------------------------------------------------

    def find_by_external_id(self, external_id: int) -> CollectionEntry | None:
        with self._db.connect() as conn:
            row = conn.execute(
                _entry_select().where(games_table.c.external_id == int(external_id))
            ).mappings().first()
        return CollectionEntry.from_row(row) if row is not None else None

    def get(self, entry_id: int) -> CollectionEntry | None:
        with self._db.connect() as conn:
            row = conn.execute(
                _entry_select().where(games_table.c.id == int(entry_id))
            ).mappings().first()
        return CollectionEntry.from_row(row) if row is not None else None

    def list_entries(self, status: str | None = None) -> list[CollectionEntry]:
        query = _entry_select()
        if status:
            query = query.where(statuses_table.c.slug == status_slug(status))
        query = query.order_by(func.lower(games_table.c.title), games_table.c.id)
        with self._db.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [CollectionEntry.from_row(row) for row in rows]

    def create(self, *, title: str, external_id: int, release_date: str = "") -> int:
        """Insert a new entry and return its id.

        A unique-index violation on ``external_id`` is reported as
        :class:`~errors.DuplicateGame`; any other database failure as
        :class:`~errors.PersistenceFailure`.
        """

        timestamp = now_utc_iso()
        try:
            with self._lock, self._db.begin() as conn:
                result = conn.execute(
                    insert(games_table).values(
                        title=title,
                        external_id=int(external_id),
                        release_date=release_date or "",
                        created_at=timestamp,
                        updated_at=timestamp,
                    )
                )
                entry_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            logger.info("Duplicate external id %s rejected by unique index", external_id)
            raise DuplicateGame(external_id=int(external_id)) from exc
        except SQLAlchemyError as exc:
            logger.error("Failed to create entry for external id %s: %s", external_id, exc)
            raise PersistenceFailure() from exc
        return int(entry_id)

    def _update_entry(self, entry_id: int, **values: Any) -> None:
        values["updated_at"] = now_utc_iso()
        with self._lock, self._db.begin() as conn:
            result = conn.execute(
                sa_update(games_table)
                .where(games_table.c.id == int(entry_id))
                .values(**values)
            )
            if result.rowcount == 0:
                raise EntryNotFound(f"entry {entry_id} not found")

    def set_status(self, entry_id: int, status_term: str) -> StatusTerm:
        """Assign an existing status term to the entry."""

        term = self.get_status_term(status_term)
        if term is None:
            raise UnknownStatus(f"unknown status: {status_term!r}")
        self._update_entry(entry_id, status_id=term.id)
        return term

    def set_rating(self, entry_id: int, value: Any) -> float | None:
        """Store a rating within ``[1, 10]``; anything else clears it."""

        rating = sanitize_rating(value)
        self._update_entry(entry_id, rating=rating)
        return rating

    def set_release_date(self, entry_id: int, release_date: str) -> None:
        self._update_entry(entry_id, release_date=release_date or "")

    def attach_asset(self, entry_id: int, asset_ref: AssetRef) -> None:
        self._update_entry(entry_id, cover_asset_id=asset_ref.id)

    def bulk_set_status(self, entry_ids: Iterable[int], status_term: str) -> int:
        term = self.get_status_term(status_term)
        if term is None:
            raise UnknownStatus(f"unknown status: {status_term!r}")
        ids = sorted({int(entry_id) for entry_id in entry_ids})
        if not ids:
            return 0
        with self._lock, self._db.begin() as conn:
            result = conn.execute(
                sa_update(games_table)
                .where(games_table.c.id.in_(ids))
                .values(status_id=term.id, updated_at=now_utc_iso())
            )
        return int(result.rowcount or 0)

    def delete(self, entry_id: int) -> list[AssetRef]:
        """Delete an entry with its asset rows; return the released assets."""

        removed, assets = self.bulk_delete([entry_id])
        if not removed:
            raise EntryNotFound(f"entry {entry_id} not found")
        return assets

    def bulk_delete(self, entry_ids: Iterable[int]) -> tuple[int, list[AssetRef]]:
        ids = sorted({int(entry_id) for entry_id in entry_ids})
        if not ids:
            return 0, []
        with self._lock, self._db.begin() as conn:
            asset_rows = conn.execute(
                select(assets_table).where(assets_table.c.game_id.in_(ids))
            ).mappings().all()
            conn.execute(sa_delete(assets_table).where(assets_table.c.game_id.in_(ids)))
            result = conn.execute(sa_delete(games_table).where(games_table.c.id.in_(ids)))
        return int(result.rowcount or 0), [AssetRef.from_row(row) for row in asset_rows]

    def status_counts(self) -> dict[str, Any]:
        """Return the total number of entries and the count per status slug."""

        counts = {term.slug: 0 for term in self.list_statuses()}
        query = (
            select(statuses_table.c.slug, func.count(games_table.c.id))
            .select_from(
                games_table.outerjoin(
                    statuses_table, games_table.c.status_id == statuses_table.c.id
                )
            )
            .group_by(statuses_table.c.slug)
        )
        total = 0
        unassigned = 0
        with self._db.connect() as conn:
            for slug, count in conn.execute(query).all():
                total += int(count)
                if slug is None:
                    unassigned += int(count)
                else:
                    counts[slug] = int(count)
        return {"total": total, "statuses": counts, "unassigned": unassigned}

    # assets -----------------------------------------------------------------

    def add_asset(
        self,
        *,
        entry_id: int | None,
        filename: str,
        path: str,
        mime_type: str = "",
        alt_text: str = "",
        width: int | None = None,
        height: int | None = None,
        thumbnail_path: str = "",
    ) -> AssetRef:
        values = {
            "game_id": entry_id,
            "filename": filename,
            "path": path,
            "mime_type": mime_type,
            "alt_text": alt_text,
            "width": width,
            "height": height,
            "thumbnail_path": thumbnail_path,
            "created_at": now_utc_iso(),
        }
        with self._lock, self._db.begin() as conn:
            result = conn.execute(insert(assets_table).values(**values))
            asset_id = result.inserted_primary_key[0]
        return AssetRef.from_row({"id": asset_id, **values})

    def get_asset(self, asset_id: int) -> AssetRef | None:
        with self._db.connect() as conn:
            row = conn.execute(
                select(assets_table).where(assets_table.c.id == int(asset_id))
            ).mappings().first()
        return AssetRef.from_row(row) if row is not None else None

    def assets_for_entry(self, entry_id: int) -> list[AssetRef]:
        with self._db.connect() as conn:
            rows = conn.execute(
                select(assets_table)
                .where(assets_table.c.game_id == int(entry_id))
                .order_by(assets_table.c.id)
            ).mappings().all()
        return [AssetRef.from_row(row) for row in rows]

    # settings ---------------------------------------------------------------

    def get_setting(self, key: str) -> str | None:
        with self._db.connect() as conn:
            return conn.execute(
                select(settings_table.c.value).where(settings_table.c.key == key)
            ).scalar_one_or_none()

    def set_setting(self, key: str, value: str) -> None:
        timestamp = now_utc_iso()
        with self._lock, self._db.begin() as conn:
            result = conn.execute(
                sa_update(settings_table)
                .where(settings_table.c.key == key)
                .values(value=value, updated_at=timestamp)
            )
            if result.rowcount == 0:
                conn.execute(
                    insert(settings_table).values(
                        key=key, value=value, updated_at=timestamp
                    )
                )


__all__ = [
    "CollectionStore",
    "EntryNotFound",
    "UnknownStatus",
    "assets_table",
    "games_table",
    "metadata",
    "settings_table",
    "statuses_table",
]
