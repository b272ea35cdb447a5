"""
SQLAlchemy database models for Akshara.

These models represent the database schema for user accounts, conversations
and their messages. Conversation and User also carry the aggregate logic that
keeps their derived fields consistent; callers persist through repositories.
"""

import enum
import uuid
from datetime import UTC, datetime
from typing import Any, Optional

import pydantic
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from akshara.exceptions import ValidationError
from akshara.models.preferences import AIModel, ConversationSettings, UserPreferences
from akshara.utils.passwords import hash_password, verify_password

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

TITLE_MAX_LENGTH = 50
DEFAULT_TITLE = "New Conversation"


def utcnow() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always comes back in UTC.

    SQLite drops tzinfo on the way in; this reattaches it on the way out so
    timestamps loaded from the database compare cleanly with fresh ones.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self) -> None:
        super().__init__(timezone=True)

    def process_bind_param(self, value: Optional[datetime], dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value

    def process_result_value(self, value: Optional[datetime], dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class ConversationStatus(str, enum.Enum):
    """Lifecycle state of a conversation. Deleted is a soft marker."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class MessageType(str, enum.Enum):
    """Author of a message."""

    USER = "user"
    AI = "ai"


class ContentType(str, enum.Enum):
    """Medium the message content was produced in."""

    TEXT = "text"
    VOICE = "voice"
    IMAGE = "image"
    FILE = "file"


class StatsKind(str, enum.Enum):
    """User usage counters addressable through User.update_stats()."""

    CONVERSATION = "conversation"
    MESSAGE = "message"
    VOICE = "voice"
    USAGE = "usage"


_STATS_COLUMNS = {
    StatsKind.CONVERSATION.value: "conversations_count",
    StatsKind.MESSAGE.value: "messages_count",
    StatsKind.VOICE.value: "voice_interactions",
    StatsKind.USAGE.value: "total_usage_time",
}


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda x: [e.value for e in x],
    )


class User(Base):
    """User account with preferences and running usage counters."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    preferences: Mapped[dict] = mapped_column(JSONType, nullable=False)

    # Usage counters, only ever incremented through update_stats()
    conversations_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    messages_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    voice_interactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_usage_time: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )  # minutes

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )
    last_active: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow
    )

    conversations: Mapped[list["Conversation"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __init__(self, **kwargs: Any):
        now = kwargs.setdefault("created_at", utcnow())
        kwargs.setdefault("updated_at", now)
        kwargs.setdefault("last_active", now)
        kwargs.setdefault("preferences", UserPreferences().model_dump(mode="json"))
        kwargs.setdefault("is_active", True)
        for column in _STATS_COLUMNS.values():
            kwargs.setdefault(column, 0)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username!r})>"

    @property
    def stats(self) -> dict[str, int]:
        return {
            "conversations": self.conversations_count,
            "messages": self.messages_count,
            "voice_interactions": self.voice_interactions,
            "total_usage_time": self.total_usage_time,
        }

    def set_password(self, plain: str) -> None:
        """Hash and store a new password. The plaintext is not kept."""
        self.password_hash = hash_password(plain)

    def check_password(self, candidate: str) -> bool:
        return verify_password(candidate, self.password_hash)

    def touch(self) -> None:
        """Record activity now."""
        self.last_active = utcnow()

    def update_stats(self, kind: str, increment: int = 1) -> None:
        """
        Increment one usage counter.

        Args:
            kind: conversation, message, voice or usage. Anything else is ignored.
            increment: Amount to add
        """
        column = _STATS_COLUMNS.get(kind.value if isinstance(kind, StatsKind) else kind)
        if column is None:
            return
        setattr(self, column, (getattr(self, column) or 0) + increment)

    def update_preferences(self, **changes: Any) -> dict:
        """
        Merge preference changes and validate the result.

        Raises:
            ValidationError: If a value is outside its allowed range or set
        """
        merged = {**(self.preferences or {}), **changes}
        try:
            validated = UserPreferences(**merged)
        except pydantic.ValidationError as e:
            raise ValidationError(_first_error(e)) from e
        # Reassign so SQLAlchemy sees the JSON column as changed
        self.preferences = validated.model_dump(mode="json")
        return self.preferences

    def deactivate(self) -> None:
        self.is_active = False


class Conversation(Base):
    """Ordered, append-only thread of messages owned by one user."""

    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_model: Mapped[AIModel] = mapped_column(
        _enum_column(AIModel), nullable=False, default=AIModel.LOCAL
    )
    settings: Mapped[dict] = mapped_column(JSONType, nullable=False)

    status: Mapped[ConversationStatus] = mapped_column(
        _enum_column(ConversationStatus),
        nullable=False,
        default=ConversationStatus.ACTIVE,
    )
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Derived from messages by recompute_stats(), never edited directly
    total_messages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    user_messages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ai_messages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    voice_messages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow
    )
    last_message_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow, index=True
    )

    __table_args__ = (
        Index("ix_conversations_user_created", "user_id", "created_at"),
        Index("ix_conversations_user_status", "user_id", "status"),
        Index("ix_conversations_user_favorite", "user_id", "is_favorite"),
    )

    user: Mapped["User"] = relationship(back_populates="conversations")
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.sequence",
    )
    tag_entries: Mapped[list["ConversationTag"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationTag.position",
    )

    def __init__(self, **kwargs: Any):
        tags = kwargs.pop("tags", None)
        now = kwargs.setdefault("created_at", utcnow())
        kwargs.setdefault("updated_at", now)
        kwargs.setdefault("last_message_at", now)
        kwargs.setdefault("status", ConversationStatus.ACTIVE)
        kwargs.setdefault("ai_model", AIModel.LOCAL)
        kwargs.setdefault("settings", ConversationSettings().model_dump())
        kwargs.setdefault("is_favorite", False)
        for column in (
            "total_messages",
            "user_messages",
            "ai_messages",
            "voice_messages",
            "tokens_used",
        ):
            kwargs.setdefault(column, 0)
        kwargs.setdefault("duration_seconds", 0.0)
        super().__init__(**kwargs)
        if tags:
            self.set_tags(tags)

    def __repr__(self) -> str:
        return (
            f"<Conversation(id={self.id}, "
            f"user_id={self.user_id}, "
            f"status={self.status!r})>"
        )

    # ----- Messages -----

    def append_message(
        self,
        type: str,
        content: str,
        content_type: str = ContentType.TEXT.value,
        metadata: Optional[dict] = None,
        timestamp: Optional[datetime] = None,
    ) -> "Message":
        """
        Append a message and bring derived fields up to date.

        Args:
            type: "user" or "ai"
            content: Message text, trimmed; must not be empty
            content_type: text, voice, image or file
            metadata: Advisory data stored as given
            timestamp: Arrival time, defaults to now

        Returns:
            The appended message

        Raises:
            ValidationError: If content is empty or type/content_type is unknown
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content is required")
        try:
            message_type = MessageType(type)
            message_content_type = ContentType(content_type or ContentType.TEXT)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        message = Message(
            type=message_type,
            content=content,
            content_type=message_content_type,
            extra_data=dict(metadata or {}),
            timestamp=timestamp or utcnow(),
            sequence=len(self.messages),
        )
        self.messages.append(message)
        self.last_message_at = message.timestamp
        self.recompute_stats()
        return message

    def recompute_stats(self) -> None:
        """Recompute every derived counter from the full message sequence."""
        messages = self.messages
        self.total_messages = len(messages)
        self.user_messages = sum(1 for m in messages if m.type == MessageType.USER)
        self.ai_messages = sum(1 for m in messages if m.type == MessageType.AI)
        self.voice_messages = sum(
            1 for m in messages if m.content_type == ContentType.VOICE
        )
        self.duration_seconds = self.calculate_duration()
        if messages:
            self.last_message_at = messages[-1].timestamp

    def get_context_messages(self, limit: int = 10) -> list["Message"]:
        """Return the last `limit` messages in arrival order."""
        if limit <= 0:
            return []
        return list(self.messages[-limit:])

    def generate_title(self) -> str:
        first_user_message = next(
            (m for m in self.messages if m.type == MessageType.USER), None
        )
        if first_user_message is None:
            return DEFAULT_TITLE
        return truncate_title(first_user_message.content)

    def calculate_duration(self) -> float:
        """Seconds between the first and last message, 0 with fewer than two."""
        if len(self.messages) < 2:
            return 0
        first, last = self.messages[0], self.messages[-1]
        return (last.timestamp - first.timestamp).total_seconds()

    def message_type_breakdown(self) -> dict[str, int]:
        breakdown = {content_type.value: 0 for content_type in ContentType}
        for message in self.messages:
            breakdown[ContentType(message.content_type).value] += 1
        return breakdown

    # ----- Status transitions -----
    # Unconditional by contract: restore() also reactivates archived and deleted.

    def archive(self) -> None:
        self.status = ConversationStatus.ARCHIVED

    def soft_delete(self) -> None:
        """Mark deleted. The row and its messages are kept."""
        self.status = ConversationStatus.DELETED

    def restore(self) -> None:
        self.status = ConversationStatus.ACTIVE

    def toggle_favorite(self) -> bool:
        self.is_favorite = not self.is_favorite
        return self.is_favorite

    # ----- Tags -----

    @property
    def tags(self) -> list[str]:
        return [entry.name for entry in self.tag_entries]

    def set_tags(self, tags: list[str]) -> None:
        """Replace the tag set. Tags are trimmed, blanks dropped, duplicates folded."""
        cleaned: list[str] = []
        for tag in tags:
            name = (tag or "").strip()
            if name and name not in cleaned:
                cleaned.append(name)

        # Reuse rows for kept names so the unique constraint never sees a clash
        existing = {entry.name: entry for entry in self.tag_entries}
        entries = []
        for position, name in enumerate(cleaned):
            entry = existing.get(name) or ConversationTag(name=name)
            entry.position = position
            entries.append(entry)
        self.tag_entries = entries

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "total_messages": self.total_messages,
            "user_messages": self.user_messages,
            "ai_messages": self.ai_messages,
            "voice_messages": self.voice_messages,
            "duration": self.duration_seconds,
            "tokens_used": self.tokens_used,
        }


class ConversationTag(Base):
    """Free-text tag attached to a conversation."""

    __tablename__ = "conversation_tags"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("conversation_id", "name", name="uq_conversation_tag"),
    )

    conversation: Mapped["Conversation"] = relationship(back_populates="tag_entries")

    def __repr__(self) -> str:
        return f"<ConversationTag(name={self.name!r})>"


class Message(Base):
    """Individual message within a conversation. Only reachable through it."""

    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)  # arrival order

    type: Mapped[MessageType] = mapped_column(
        _enum_column(MessageType), nullable=False
    )
    content_type: Mapped[ContentType] = mapped_column(
        _enum_column(ContentType), nullable=False, default=ContentType.TEXT
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # voice_duration, language, confidence, emotions, intent, entities
    extra_data: Mapped[dict] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )
    timestamp: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence", name="uq_message_sequence"),
    )

    conversation: Mapped["Conversation"] = relationship(back_populates="messages")

    def __repr__(self) -> str:
        return (
            f"<Message(type={self.type!r}, sequence={self.sequence}, "
            f"timestamp={self.timestamp})>"
        )


def truncate_title(text: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Cut text to max_length characters, marking the cut with an ellipsis."""
    return text[:max_length] + "..." if len(text) > max_length else text


def _first_error(error: pydantic.ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {first.get('msg')}" if field else first.get("msg", str(error))
