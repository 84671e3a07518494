"""Route group exports."""

from . import health, routes, shops

__all__ = ["routes", "health", "shops"]
