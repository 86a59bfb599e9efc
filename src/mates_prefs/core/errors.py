"""
Error taxonomy for preference sync.

Only BackendRejected (and NotReady once the resolver is closed) reaches
callers of the preference store. ScopeUnavailable and MalformedContent
are absorbed by the convenience paths and turned into no-ops / empty blobs.
"""

from __future__ import annotations


class PrefsError(Exception):
    """Base class for all preference-sync errors."""


class NotReady(PrefsError):
    """No client handle is available (resolver closed before the host came up)."""


class ScopeUnavailable(PrefsError):
    """No explicit scope was given and the current space could not be resolved."""


class MalformedContent(PrefsError):
    """Stored content is not a mapping."""


class BackendRejected(PrefsError):
    """The homeserver refused a read or write (permission, network, 5xx...)."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        errcode: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.errcode = errcode

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "status": self.status,
            "errcode": self.errcode,
        }
