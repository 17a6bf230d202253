"""
Domain errors raised by the journal services.
The API layer maps them onto HTTP status codes.
"""
from typing import Any, Dict, Optional


class JournalError(Exception):
    """Base class for all journal errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class TradeNotFoundError(JournalError):
    def __init__(self, user: str, trade_id: str):
        super().__init__("Trade not found", {"user": user, "trade_id": trade_id})
        self.trade_id = trade_id


class TradeAlreadyClosedError(JournalError):
    def __init__(self, trade_id: str):
        super().__init__("Trade is already closed", {"trade_id": trade_id})
        self.trade_id = trade_id
