"""Cover art download for collection entries."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from collection.models import AssetRef
from helpers import sanitize_text_field
from media.storage import AssetStore

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"


def extension_from_url(url: str) -> str:
    """Return the file extension of the URL path, ``jpg`` when it has none."""

    path = urlparse(url).path
    ext = os.path.splitext(os.path.basename(path))[1].lstrip(".").lower()
    if not ext or not ext.isalnum():
        return DEFAULT_EXTENSION
    return ext


def cover_filename(owner_id: Any, url: str) -> str:
    return f"game-cover-{owner_id}.{extension_from_url(url)}"


class CoverFetcher:
    """Download a cover image once and hand it to the :class:`AssetStore`.

    Failures are logged and reported as ``None``; nothing is retried.
    """

    def __init__(
        self,
        assets: AssetStore,
        *,
        timeout: float = 30.0,
        user_agent: str = "",
        request_factory: Callable[..., Any] | None = None,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        self._assets = assets
        self._timeout = timeout
        self._user_agent = (user_agent or "").strip()
        self._request_factory = request_factory or Request
        self._opener = opener or urlopen

    def fetch_cover(self, url: str, owner_id: Any, title: str = "") -> AssetRef | None:
        if not url:
            return None

        request = self._request_factory(url, method="GET")
        if self._user_agent:
            request.add_header("User-Agent", self._user_agent)
        try:
            with self._opener(request, timeout=self._timeout) as response:
                data = response.read()
        except Exception as exc:
            logger.warning("Cover download failed for %s: %s", url, exc)
            return None
        if not data:
            logger.warning("Cover download for %s returned an empty body", url)
            return None

        clean_title = sanitize_text_field(title)
        alt_text = f"Cover art for {clean_title}" if clean_title else ""
        try:
            return self._assets.save(
                data,
                cover_filename(owner_id, url),
                entry_id=owner_id,
                alt_text=alt_text,
            )
        except Exception as exc:
            logger.warning("Failed to store cover for entry %s: %s", owner_id, exc)
            return None


__all__ = ["CoverFetcher", "cover_filename", "extension_from_url"]
