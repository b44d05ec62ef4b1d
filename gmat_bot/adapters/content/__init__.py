"""Content adapter — ContentProvider implementation."""

from gmat_bot.adapters.content.gmat_database import GmatDatabaseProvider

__all__ = ["GmatDatabaseProvider"]
