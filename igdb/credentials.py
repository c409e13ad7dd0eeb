"""IGDB client credential storage."""

from __future__ import annotations

import logging
import re
from typing import Protocol

logger = logging.getLogger(__name__)

CLIENT_ID_SETTING = "igdb_client_id"
CLIENT_SECRET_SETTING = "igdb_client_secret"

_CREDENTIAL_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


class InvalidCredentialFormat(ValueError):
    """Raised when a saved credential contains unsupported characters."""

    def __init__(self, field: str) -> None:
        label = "Client ID" if field == CLIENT_ID_SETTING else "Client Secret"
        super().__init__(
            f"Invalid {label} format. Only alphanumeric characters, hyphens, "
            "and underscores are allowed."
        )
        self.field = field


class SettingsBackend(Protocol):
    def get_setting(self, key: str) -> str | None: ...

    def set_setting(self, key: str, value: str) -> None: ...


class CredentialStore:
    """Resolve the IGDB client id/secret from saved settings or configuration.

    Saved settings take precedence over the values the process was started
    with, so credentials can be rotated without a restart.
    """

    def __init__(
        self,
        *,
        client_id: str | None = None,
        client_secret: str | None = None,
        settings: SettingsBackend | None = None,
    ) -> None:
        self._client_id = (client_id or "").strip()
        self._client_secret = (client_secret or "").strip()
        self._settings = settings

    def _saved(self, key: str) -> str:
        if self._settings is None:
            return ""
        return (self._settings.get_setting(key) or "").strip()

    def get(self) -> tuple[str, str]:
        """Return ``(client_id, client_secret)``; either may be empty."""

        client_id = self._saved(CLIENT_ID_SETTING) or self._client_id
        client_secret = self._saved(CLIENT_SECRET_SETTING) or self._client_secret
        return client_id, client_secret

    @property
    def client_id(self) -> str:
        return self.get()[0]

    def is_configured(self) -> bool:
        client_id, client_secret = self.get()
        return bool(client_id and client_secret)

    def save(self, client_id: str | None, client_secret: str | None) -> None:
        """Persist new credentials; ``None`` or blank leaves a value unchanged."""

        if self._settings is None:
            raise RuntimeError("credential settings backend is not configured")

        updates: list[tuple[str, str]] = []
        for key, raw in (
            (CLIENT_ID_SETTING, client_id),
            (CLIENT_SECRET_SETTING, client_secret),
        ):
            value = (raw or "").strip()
            if not value:
                continue
            if not _CREDENTIAL_RE.match(value):
                raise InvalidCredentialFormat(key)
            updates.append((key, value))

        for key, value in updates:
            self._settings.set_setting(key, value)
        if updates:
            logger.info(
                "Updated IGDB credentials: %s", ", ".join(key for key, _ in updates)
            )


__all__ = [
    "CLIENT_ID_SETTING",
    "CLIENT_SECRET_SETTING",
    "CredentialStore",
    "InvalidCredentialFormat",
]
