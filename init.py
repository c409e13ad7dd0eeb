"""Application startup orchestration helpers."""

from __future__ import annotations

import logging
from typing import Callable

from collection.models import StatusTerm
from collection.store import CollectionStore

logger = logging.getLogger(__name__)


def initialize_app(
    *,
    ensure_dirs: Callable[[], None],
    store: CollectionStore,
    seed_statuses: bool = True,
) -> list[StatusTerm]:
    """Perform the core startup tasks required for the application.

    The initializer ensures filesystem directories exist, creates the
    collection schema and seeds the built-in status terms. It returns the
    status terms known after startup.
    """

    ensure_dirs()

    try:
        store.create_schema()
    except Exception:
        logger.exception("Failed to create the collection schema during startup")
        raise

    if seed_statuses:
        store.ensure_default_statuses()

    terms = store.list_statuses()
    logger.info("Collection store ready with %d status terms", len(terms))
    return terms


__all__ = ["initialize_app"]
