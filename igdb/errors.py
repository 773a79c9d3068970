"""Exceptions raised while talking to IGDB and the Twitch identity endpoint."""

from __future__ import annotations


class CatalogError(RuntimeError):
    """Base class for failures of the upstream game catalog."""


class UpstreamAuthError(CatalogError):
    """The Twitch client-credentials exchange failed."""


class UpstreamCatalogError(CatalogError):
    """IGDB answered with a non-success status or an unusable payload."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


__all__ = ["CatalogError", "UpstreamAuthError", "UpstreamCatalogError"]
