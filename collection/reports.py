"""Tabular views of the collection."""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from collection.models import CollectionEntry

EXPORT_COLUMNS = [
    "ID",
    "Title",
    "IGDB ID",
    "Release Date",
    "Status",
    "Rating",
    "Added",
]


def collection_frame(entries: Iterable[CollectionEntry]) -> pd.DataFrame:
    """Return one row per entry using the export column labels."""

    records = [
        {
            "ID": entry.id,
            "Title": entry.title,
            "IGDB ID": entry.external_id,
            "Release Date": entry.release_date,
            "Status": entry.status_name or entry.status,
            "Rating": entry.rating,
            "Added": entry.created_at,
        }
        for entry in entries
    ]
    if not records:
        return pd.DataFrame(columns=EXPORT_COLUMNS)
    return pd.DataFrame(records, columns=EXPORT_COLUMNS)


def export_csv(entries: Iterable[CollectionEntry]) -> str:
    return collection_frame(entries).to_csv(index=False)


def status_summary(
    entries: Iterable[CollectionEntry],
) -> dict[str, dict[str, float | int | None]]:
    """Return count and mean rating per status slug."""

    frame = pd.DataFrame(
        [{"status": entry.status or "", "rating": entry.rating} for entry in entries],
        columns=["status", "rating"],
    )
    if frame.empty:
        return {}
    frame["rating"] = pd.to_numeric(frame["rating"], errors="coerce")
    grouped = frame.groupby("status", sort=True)["rating"].agg(["size", "mean"])
    summary: dict[str, dict[str, float | int | None]] = {}
    for status, row in grouped.iterrows():
        mean = row["mean"]
        summary[str(status)] = {
            "count": int(row["size"]),
            "average_rating": None if pd.isna(mean) else round(float(mean), 2),
        }
    return summary


__all__ = ["EXPORT_COLUMNS", "collection_frame", "export_csv", "status_summary"]
