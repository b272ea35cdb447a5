"""
Conversation repository.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session, selectinload

from akshara.db.repositories.base import BaseRepository
from akshara.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from akshara.models.db import (
    Conversation,
    ConversationStatus,
    ConversationTag,
    Message,
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "last_message_at": Conversation.last_message_at,
    "created_at": Conversation.created_at,
    "updated_at": Conversation.updated_at,
    "title": Conversation.title,
    "total_messages": Conversation.total_messages,
}

# camelCase names accepted from query strings
_SORT_ALIASES = {
    "lastMessageAt": "last_message_at",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "totalMessages": "total_messages",
}


def _like_pattern(term: str) -> str:
    """Build a LIKE pattern matching `term` literally anywhere in the value."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _parse_status(status: str | ConversationStatus) -> ConversationStatus:
    try:
        return ConversationStatus(status)
    except ValueError:
        raise ValidationError(
            f"Invalid status: {status}. Must be one of "
            f"{[s.value for s in ConversationStatus]}"
        )


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for Conversation model."""

    def __init__(self, session: Session):
        super().__init__(Conversation, session)

    def get_with_messages(self, id: uuid.UUID) -> Optional[Conversation]:
        """
        Get conversation with messages and tags loaded.

        Args:
            id: Conversation UUID

        Returns:
            Conversation or None
        """
        return (
            self.session.query(Conversation)
            .options(
                selectinload(Conversation.messages),
                selectinload(Conversation.tag_entries),
            )
            .filter(Conversation.id == id)
            .first()
        )

    def get_owned(self, id: uuid.UUID, user_id: uuid.UUID) -> Conversation:
        """
        Get a conversation and check that `user_id` owns it.

        Raises:
            NotFoundError: If no conversation has this id
            PermissionDeniedError: If it belongs to another user
        """
        conversation = self.get_with_messages(id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if conversation.user_id != user_id:
            raise PermissionDeniedError("Access denied")
        return conversation

    def create_for_user(self, user_id: uuid.UUID, **kwargs) -> Conversation:
        """
        Create an empty conversation owned by `user_id`.

        Args:
            user_id: Owner UUID
            **kwargs: Other conversation fields (title, ai_model, settings, tags)

        Returns:
            Created conversation
        """
        conversation = self.create(user_id=user_id, **kwargs)
        logger.info(f"Created conversation {conversation.id} for user {user_id}")
        return conversation

    def _owner_query(
        self, user_id: uuid.UUID, status: ConversationStatus
    ) -> Query:
        return self.session.query(Conversation).filter(
            Conversation.user_id == user_id,
            Conversation.status == status,
        )

    def get_user_conversations(
        self,
        user_id: uuid.UUID,
        status: str | ConversationStatus = ConversationStatus.ACTIVE,
        limit: Optional[int] = 20,
        offset: int = 0,
        sort_by: str = "last_message_at",
        sort_order: str = "desc",
    ) -> List[Conversation]:
        """
        Get conversations owned by a user in one status.

        Args:
            user_id: Owner UUID
            status: active, archived or deleted
            limit: Maximum number of results
            offset: Number of results to skip
            sort_by: last_message_at, created_at, updated_at, title or total_messages
            sort_order: asc or desc

        Returns:
            List of conversations

        Raises:
            ValidationError: On an unknown status, sort field or sort order
        """
        sort_by = _SORT_ALIASES.get(sort_by, sort_by)
        column = SORTABLE_FIELDS.get(sort_by)
        if column is None:
            raise ValidationError(
                f"Invalid sort field: {sort_by}. Must be one of {sorted(SORTABLE_FIELDS)}"
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sortOrder must be 'asc' or 'desc'")

        order = column.desc() if sort_order == "desc" else column.asc()
        query = (
            self._owner_query(user_id, _parse_status(status))
            .options(selectinload(Conversation.tag_entries))
            .order_by(order, Conversation.id)
            .offset(offset)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def count_user_conversations(
        self,
        user_id: uuid.UUID,
        status: str | ConversationStatus = ConversationStatus.ACTIVE,
    ) -> int:
        """Count conversations owned by a user in one status."""
        return self._owner_query(user_id, _parse_status(status)).count()

    def search_conversations(
        self,
        user_id: uuid.UUID,
        term: str,
        limit: Optional[int] = 20,
        offset: int = 0,
    ) -> List[Conversation]:
        """
        Search a user's active conversations.

        Matches when `term` appears, case-insensitively and as a literal
        substring, in the title, in any message content, or in any tag.
        Case folding follows the database: SQLite only folds ASCII letters,
        PostgreSQL folds all of them.

        Args:
            user_id: Owner UUID
            term: Text to look for
            limit: Maximum number of results
            offset: Number of results to skip

        Returns:
            Matching conversations, most recent activity first

        Raises:
            ValidationError: If the term is empty
        """
        if not term:
            raise ValidationError("Search query is required")

        pattern = _like_pattern(term)
        query = (
            self._owner_query(user_id, ConversationStatus.ACTIVE)
            .filter(
                or_(
                    Conversation.title.ilike(pattern, escape="\\"),
                    Conversation.messages.any(
                        Message.content.ilike(pattern, escape="\\")
                    ),
                    Conversation.tag_entries.any(
                        ConversationTag.name.ilike(pattern, escape="\\")
                    ),
                )
            )
            .options(selectinload(Conversation.tag_entries))
            .order_by(Conversation.last_message_at.desc(), Conversation.id)
            .offset(offset)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def add_message(
        self,
        conversation: Conversation,
        type: str,
        content: str,
        content_type: str = "text",
        metadata: Optional[dict] = None,
        timestamp: Optional[datetime] = None,
    ) -> Message:
        """
        Append a message (stats are recomputed by the aggregate) and flush.

        Raises:
            ValidationError: If content is empty
        """
        message = conversation.append_message(
            type=type,
            content=content,
            content_type=content_type,
            metadata=metadata,
            timestamp=timestamp,
        )
        self.session.flush()
        return message

    def update_details(
        self,
        conversation: Conversation,
        title: Optional[str] = None,
        summary: Optional[str] = None,
        tags: Optional[list[str]] = None,
        is_favorite: Optional[bool] = None,
    ) -> Conversation:
        """
        Apply the provided fields.

        An empty title or summary leaves it unchanged; an empty tag list clears
        the tags.
        """
        if title:
            if len(title.strip()) > 100:
                raise ValidationError("Title cannot exceed 100 characters")
            conversation.title = title.strip()
        if summary:
            conversation.summary = summary.strip()
        if tags is not None:
            conversation.set_tags(tags)
        if is_favorite is not None:
            conversation.is_favorite = is_favorite
        self.session.flush()
        return conversation

    def archive(self, conversation: Conversation) -> Conversation:
        conversation.archive()
        self.session.flush()
        logger.info(f"Archived conversation {conversation.id}")
        return conversation

    def soft_delete(self, conversation: Conversation) -> Conversation:
        conversation.soft_delete()
        self.session.flush()
        logger.info(f"Deleted conversation {conversation.id}")
        return conversation

    def restore(self, conversation: Conversation) -> Conversation:
        conversation.restore()
        self.session.flush()
        logger.info(f"Restored conversation {conversation.id}")
        return conversation

    def toggle_favorite(self, conversation: Conversation) -> bool:
        is_favorite = conversation.toggle_favorite()
        self.session.flush()
        return is_favorite
