"""Command framework for slashkit.

Provides the BaseCommand ABC and the BotContext service bundle that
every command and event receives at construction.
"""

from .base import BaseCommand, BotContext

__all__ = [
    "BaseCommand",
    "BotContext",
]
