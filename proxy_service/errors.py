"""
Error taxonomy for the proxy.

Every error carries the backend diagnostic triple (``code``, ``name``,
``message``) plus the HTTP status the API boundary answers with.
"""

from typing import Any, Dict, Optional

DUPLICATE_KEY_CODE = 11000


class ProxyError(Exception):
    """Base error for the proxy service."""

    status_code = 500
    label = "Server error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.name = name or type(self).__name__

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ProxyError":
        """Wrap a driver (or any) exception, keeping its diagnostics."""
        code = getattr(exc, "code", None)
        if not isinstance(code, int):
            code = None
        return cls(str(exc) or type(exc).__name__, code=code, name=type(exc).__name__)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.label,
            "code": self.code,
            "name": self.name,
            "message": self.message,
        }


class InvalidKeyError(ProxyError):
    """Raised when a connection string is missing or has an unknown scheme."""

    status_code = 400
    label = "Invalid mongodbUri"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.label, "message": self.message}


class InvalidRequestError(ProxyError):
    """Raised when a well-typed body still cannot be turned into a query."""

    status_code = 400
    label = "Invalid request body"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.label, "message": self.message}


class BackendConnectionError(ProxyError):
    """Raised when a backend connection cannot be established.

    Answers like any other backend failure (500 "Server error"); the
    separate type only keeps connect failures apart in logs and in the cache.
    """


class DuplicateKeyError(ProxyError):
    """Raised when a write violates a unique index."""

    status_code = 409
    label = "Duplicate key"

    def __init__(self, message: str, *, code: Optional[int] = DUPLICATE_KEY_CODE, name: Optional[str] = None) -> None:
        super().__init__(message, code=code or DUPLICATE_KEY_CODE, name=name)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.label, "code": self.code, "message": self.message}


class BackendOperationError(ProxyError):
    """Raised for every other backend failure."""
