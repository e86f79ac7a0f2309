"""API routers."""

from . import analysts, evaluate, update

__all__ = ["analysts", "evaluate", "update"]
