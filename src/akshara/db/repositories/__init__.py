"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from akshara.db.repositories.base import BaseRepository
from akshara.db.repositories.conversation import ConversationRepository
from akshara.db.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "ConversationRepository",
    "UserRepository",
]
