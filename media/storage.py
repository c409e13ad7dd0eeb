"""Filesystem storage for downloaded cover images."""

from __future__ import annotations

import io
import logging
import mimetypes
import os
from pathlib import Path
from typing import Iterable

from PIL import Image, UnidentifiedImageError

from collection.models import AssetRef
from collection.store import CollectionStore

logger = logging.getLogger(__name__)

try:  # Pillow >= 9.1
    _RESAMPLE_LANCZOS = Image.Resampling.LANCZOS  # type: ignore[attr-defined]
except AttributeError:  # pragma: no cover - fallback for older Pillow
    _RESAMPLE_LANCZOS = Image.LANCZOS


def unique_path(directory: Path, filename: str) -> Path:
    """Return a path in ``directory`` that does not exist yet.

    ``cover.jpg`` becomes ``cover-1.jpg``, ``cover-2.jpg`` ... on collisions.
    """

    candidate = directory / filename
    stem, suffix = os.path.splitext(filename)
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}-{counter}{suffix}"
        counter += 1
    return candidate


class AssetStore:
    """Write image bytes to disk, derive a thumbnail and record the asset."""

    def __init__(
        self,
        root: str | os.PathLike[str],
        store: CollectionStore,
        *,
        thumbnail_size: int = 300,
    ) -> None:
        self._root = Path(root)
        self._store = store
        self._thumbnail_size = thumbnail_size if thumbnail_size > 0 else 300

    @property
    def root(self) -> Path:
        return self._root

    def save(
        self,
        data: bytes,
        filename: str,
        *,
        entry_id: int | None,
        alt_text: str = "",
    ) -> AssetRef:
        """Persist ``data`` and return the recorded :class:`AssetRef`."""

        self._root.mkdir(parents=True, exist_ok=True)
        path = unique_path(self._root, filename)
        path.write_bytes(data)

        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        width, height, thumbnail_path = self._generate_metadata(data, path)

        try:
            asset = self._store.add_asset(
                entry_id=entry_id,
                filename=path.name,
                path=os.fspath(path),
                mime_type=mime_type,
                alt_text=alt_text,
                width=width,
                height=height,
                thumbnail_path=thumbnail_path,
            )
        except Exception:
            # No row points at the files, so they must not outlive the insert.
            for file_path in (path, thumbnail_path):
                if file_path:
                    Path(file_path).unlink(missing_ok=True)
            raise
        logger.info("Stored asset %s for entry %s at %s", asset.id, entry_id, path)
        return asset

    def _generate_metadata(
        self, data: bytes, path: Path
    ) -> tuple[int | None, int | None, str]:
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                thumb = img.convert("RGB")
                thumb.thumbnail(
                    (self._thumbnail_size, self._thumbnail_size), _RESAMPLE_LANCZOS
                )
                thumb_path = path.with_name(
                    f"{path.stem}-{self._thumbnail_size}x{self._thumbnail_size}.jpg"
                )
                thumb.save(thumb_path, format="JPEG", quality=90)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            logger.warning("Could not generate image metadata for %s: %s", path, exc)
            return None, None, ""
        return width, height, os.fspath(thumb_path)

    def release(self, assets: Iterable[AssetRef]) -> int:
        """Delete the files behind ``assets``; return how many were removed."""

        removed = 0
        for asset in assets:
            for file_path in (asset.path, asset.thumbnail_path):
                if not file_path:
                    continue
                try:
                    Path(file_path).unlink()
                except FileNotFoundError:
                    continue
                except OSError as exc:
                    logger.warning("Failed to remove asset file %s: %s", file_path, exc)
                    continue
                removed += 1
        return removed


__all__ = ["AssetStore", "unique_path"]
