"""Exception types raised across the sync client."""
from __future__ import annotations


class PaperTraderError(Exception):
    """Base class for client-side failures."""


class FrameError(PaperTraderError, ValueError):
    """An inbound feed frame is missing fields or carries bad values."""


class RequestError(PaperTraderError):
    """A backend call failed; `message` is safe to show to the user."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class TradeValidationError(PaperTraderError):
    """A trade ticket failed the local pre-checks."""
