"""General-purpose commands and lifecycle events."""

from .module import GeneralModule

__all__ = ["GeneralModule"]
