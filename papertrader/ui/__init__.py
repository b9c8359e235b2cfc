"""UI package (TUI)."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .app import PaperTradeApp as PaperTradeApp

__all__ = ["PaperTradeApp"]


def __getattr__(name: str):
    if name == "PaperTradeApp":
        from .app import PaperTradeApp

        return PaperTradeApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
