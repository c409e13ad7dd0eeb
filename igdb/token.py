"""Twitch OAuth token provider for IGDB requests."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Mapping
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from errors import AuthFailure, CredentialsMissing
from igdb.credentials import CredentialStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    value: str
    obtained_at: float


class TokenProvider:
    """Lazily exchange client credentials for a bearer token and keep it.

    The token is held for the lifetime of the instance; it carries no expiry
    and is never refreshed on its own. A token the catalog later rejects
    surfaces as :class:`~errors.AuthFailure` from the catalog client.
    """

    TOKEN_URL = "https://id.twitch.tv/oauth2/token"

    def __init__(
        self,
        credentials: CredentialStore,
        *,
        timeout: float = 30.0,
        request_factory: Callable[..., Any] | None = None,
        opener: Callable[..., Any] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._credentials = credentials
        self._timeout = timeout
        self._request_factory = request_factory or Request
        self._opener = opener or urlopen
        self._clock = clock or time.time
        self._lock = Lock()
        self._token: AccessToken | None = None

    @property
    def client_id(self) -> str:
        return self._credentials.client_id

    @property
    def token(self) -> AccessToken | None:
        return self._token

    def get_token(self) -> str:
        """Return the cached bearer token, exchanging credentials on first use."""

        token = self._token
        if token is not None:
            return token.value
        with self._lock:
            if self._token is None:
                self._token = self._exchange()
            return self._token.value

    def reset(self) -> None:
        """Forget the cached token so the next call exchanges again."""

        with self._lock:
            self._token = None

    def _exchange(self) -> AccessToken:
        client_id, client_secret = self._credentials.get()
        if not client_id or not client_secret:
            raise CredentialsMissing()

        payload = urlencode(
            {
                "client_id": client_id,
                "client_secret": client_secret,
                "grant_type": "client_credentials",
            }
        ).encode("utf-8")
        request = self._request_factory(self.TOKEN_URL, data=payload, method="POST")
        request.add_header("Content-Type", "application/x-www-form-urlencoded")

        try:
            with self._opener(request, timeout=self._timeout) as response:
                body = response.read()
        except Exception as exc:
            logger.warning("Twitch token exchange failed: %s", exc)
            raise AuthFailure() from exc

        try:
            data = json.loads(body.decode("utf-8")) if body else {}
        except (UnicodeDecodeError, ValueError) as exc:
            raise AuthFailure() from exc

        value = data.get("access_token") if isinstance(data, Mapping) else None
        if not value:
            logger.warning("Twitch token response did not include an access token")
            raise AuthFailure()

        logger.info("Obtained IGDB access token")
        return AccessToken(value=str(value), obtained_at=self._clock())


__all__ = ["AccessToken", "TokenProvider"]
