"""HTTP API for updates, evaluation and analyst credibility."""

from .app import create_app
from .services import Services
from .settings import ApiSettings

__all__ = ["ApiSettings", "Services", "create_app"]
