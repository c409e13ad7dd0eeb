"""General-purpose helper utilities shared across the application."""

from __future__ import annotations

import numbers
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

import pandas as pd


__all__ = [
    "_coerce_int",
    "_dedupe_preserve_order",
    "_format_first_release_date",
    "_normalize_lookup_name",
    "_parse_name_list",
    "now_utc_iso",
    "sanitize_text_field",
    "sanitize_url",
    "status_name_from_slug",
    "status_slug",
]


_TAG_RE = re.compile(r"<[^>]*>")
_OCTET_RE = re.compile(r"%[a-fA-F0-9]{2}")
_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_RE = re.compile(r"[^a-z0-9_-]+")


def now_utc_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""

    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _normalize_lookup_name(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    try:
        if pd.isna(value):
            return ""
    except Exception:
        pass
    return str(value).strip()


def _dedupe_preserve_order(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        text = str(value).strip()
        if not text:
            continue
        key = text.casefold()
        if key in seen:
            continue
        seen.add(key)
        result.append(text)
    return result


def _parse_name_list(value: Any) -> list[str]:
    """Return the distinct ``name`` entries of an IGDB expansion list, in order.

    Plain strings are accepted as already-resolved names; mappings without a
    usable ``name`` are skipped.
    """

    if value is None or isinstance(value, (str, bytes)):
        return []
    if isinstance(value, Mapping):
        value = [value]
    try:
        iterator = iter(value)
    except TypeError:
        return []
    names: list[str] = []
    for element in iterator:
        if isinstance(element, Mapping):
            text = _normalize_lookup_name(element.get("name"))
        elif isinstance(element, str):
            text = element.strip()
        else:
            continue
        if text:
            names.append(text)
    return _dedupe_preserve_order(names)


def _coerce_int(value: Any, default: int | None = None) -> int | None:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        try:
            return int(value)
        except (OverflowError, ValueError):
            return default
    text = str(value).strip()
    if not text:
        return default
    try:
        return int(float(text))
    except (OverflowError, TypeError, ValueError):
        return default


def _format_first_release_date(value: Any) -> str:
    if value in (None, "", 0):
        return ""
    try:
        timestamp = float(value)
    except (TypeError, ValueError):
        try:
            timestamp = float(str(value).strip())
        except (TypeError, ValueError):
            return ""
    if timestamp <= 0:
        return ""
    try:
        dt = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return ""
    return dt.date().isoformat()


def sanitize_text_field(value: Any) -> str:
    """Return ``value`` as single-line plain text.

    Markup tags, percent-encoded octets and control characters are removed and
    runs of whitespace collapse to a single space.
    """

    text = _normalize_lookup_name(value)
    if not text:
        return ""
    text = _TAG_RE.sub("", text)
    text = _OCTET_RE.sub("", text)
    text = "".join(ch if ch.isprintable() else " " for ch in text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def sanitize_url(value: Any) -> str:
    """Return ``value`` when it is a well-formed http(s) URL, otherwise ``""``."""

    text = _normalize_lookup_name(value)
    if not text or any(ch.isspace() for ch in text):
        return ""
    if text.startswith("//"):
        text = f"https:{text}"
    try:
        parsed = urlparse(text)
    except ValueError:
        return ""
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return ""
    return text


def status_slug(value: Any) -> str:
    """Normalize a caller-supplied status into a term slug."""

    text = sanitize_text_field(value).lower().replace(" ", "-")
    return _SLUG_RE.sub("", text).strip("-_")


def status_name_from_slug(slug: str) -> str:
    """Return the display name used when a status term is created lazily."""

    return slug[:1].upper() + slug[1:] if slug else ""
