"""Error taxonomy shared by the catalog client and the import pipeline."""

from __future__ import annotations


class GameLogError(RuntimeError):
    """Base class for failures raised while searching or importing games."""

    message: str = "Game log operation failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class CredentialsMissing(GameLogError):
    """Raised when the IGDB client id or secret is not configured."""

    message = "IGDB API credentials not configured"


class AuthFailure(GameLogError):
    """Raised when the token exchange fails or the catalog rejects the token."""

    message = "Failed to get IGDB access token"


class CatalogUnavailable(GameLogError):
    """Raised on catalog transport failures or undecodable responses."""

    message = "IGDB catalog unavailable"


class MalformedPayload(GameLogError):
    """Raised when an add request carries undecodable game data."""

    message = "Invalid game data format"


class DuplicateGame(GameLogError):
    """Raised when a game with the same external id is already collected."""

    message = "Game already exists in your collection"

    def __init__(self, message: str | None = None, *, external_id: int | None = None) -> None:
        super().__init__(message)
        self.external_id = external_id


class PersistenceFailure(GameLogError):
    """Raised when the collection store cannot create or update an entry."""

    message = "Failed to create game entry"


__all__ = [
    "AuthFailure",
    "CatalogUnavailable",
    "CredentialsMissing",
    "DuplicateGame",
    "GameLogError",
    "MalformedPayload",
    "PersistenceFailure",
]
