# assetledger/errors.py
"""
Exception hierarchy for the asset ledger.

Every failure a caller can trigger maps to exactly one subclass of
LedgerError, so callers (and the HTTP layer) can tell the kinds apart.
All of them are raised before any state is written.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """
    Base exception for all ledger errors.

    Args:
        message: Human-readable error message
        details: Optional structured data (asset hash, caller, index...)
    """

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the wire."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidArgument(LedgerError):
    """Malformed input: empty hash, sentinel owner, bad index type."""


class AlreadyExists(LedgerError):
    """Duplicate registration."""


class NotFound(LedgerError):
    """Operation on a hash that was never registered."""


class NotAuthorized(LedgerError):
    """Caller is not the current owner."""


class OutOfRange(LedgerError):
    """Enumeration index beyond the asset count."""


class AuthenticationError(LedgerError):
    """A request could not be tied to a known principal."""


class StorageError(LedgerError):
    """Persisted state is unreadable or inconsistent."""


_ERROR_TYPES = {
    cls.__name__: cls
    for cls in (
        LedgerError,
        InvalidArgument,
        AlreadyExists,
        NotFound,
        NotAuthorized,
        OutOfRange,
        AuthenticationError,
        StorageError,
    )
}


def error_from_dict(data: Dict[str, Any]) -> LedgerError:
    """Rebuild a typed error from LedgerError.to_dict() output."""
    cls = _ERROR_TYPES.get(data.get("error_type", ""), LedgerError)
    return cls(data.get("message", "Unknown error"), details=data.get("details") or {})
