from typing import Any, Optional


class StockfighterError(Exception):
    """Base exception for all client errors."""
    pass


class ApiError(StockfighterError):
    """Error reported by the venue (non-200 status or ``ok: false``)."""

    def __init__(self, message: str, status_code: Optional[int] = None, status: str = "", response: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = status
        self.response = response

    def __str__(self) -> str:
        if self.status:
            return f"{self.status}: {self.message}"
        return self.message


class TransportError(StockfighterError):
    """The request never produced a response (connection, timeout, socket closed)."""
    pass


class DecodeError(StockfighterError):
    """A response body was not valid JSON or did not match the expected shape."""
    pass
