"""
Conversation API routes.

Endpoints for creating, listing, searching and managing a user's own
conversations.
"""

from datetime import UTC, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from akshara.api.auth import get_current_user
from akshara.api.schemas import (
    ConversationCreateRequest,
    ConversationDetail,
    ConversationListItem,
    ConversationListResponse,
    ConversationResponse,
    ConversationSearchResponse,
    ConversationStatsDetail,
    ConversationStatsResponse,
    ConversationUpdateRequest,
    ExportConversation,
    ExportData,
    ExportResponse,
    FavoriteResponse,
    MessageResponse,
    SuccessResponse,
)
from akshara.db.connection import get_db
from akshara.db.repositories import ConversationRepository, UserRepository
from akshara.exceptions import ValidationError
from akshara.models.db import DEFAULT_TITLE, Conversation, Message, StatsKind, User
from akshara.models.preferences import AIModel, ConversationSettings

router = APIRouter()


def _message_to_response(message: Message) -> MessageResponse:
    """Convert Message model to MessageResponse (metadata lives in extra_data)."""
    return MessageResponse(
        type=message.type,
        content=message.content,
        content_type=message.content_type,
        metadata=message.extra_data or {},
        timestamp=message.timestamp,
    )


def _conversation_to_list_item(conv: Conversation) -> ConversationListItem:
    return ConversationListItem.model_validate(conv)


def _conversation_to_detail(conv: Conversation) -> ConversationDetail:
    """Convert Conversation model to ConversationDetail schema."""
    base = _conversation_to_list_item(conv)
    return ConversationDetail(
        **base.model_dump(),
        messages=[_message_to_response(m) for m in conv.messages],
    )


def _initial_settings(user: User, overrides: Optional[dict]) -> dict:
    """Seed conversation settings from the owner's preferences."""
    preferences = user.preferences or {}
    seeded = {
        "voice_enabled": preferences.get("voice_enabled", True),
        "language": preferences.get("language", "en"),
        **(overrides or {}),
    }
    try:
        return ConversationSettings(**seeded).model_dump()
    except ValueError as e:
        raise ValidationError(f"Invalid conversation settings: {e}")


def _parse_ai_model(value: Optional[str], user: User) -> AIModel:
    value = value or (user.preferences or {}).get("ai_model") or AIModel.LOCAL
    try:
        return AIModel(value)
    except ValueError:
        raise ValidationError(
            f"Invalid aiModel: {value}. Must be one of {[m.value for m in AIModel]}"
        )


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    status: str = Query("active", description="active, archived or deleted"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    skip: int = Query(0, ge=0, description="Number of items to skip"),
    sort_by: str = Query("last_message_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ConversationListResponse:
    """
    List the caller's conversations in one status.

    Messages are not included; use GET /conversation/{id} for those.
    """
    repo = ConversationRepository(session)
    conversations = repo.get_user_conversations(
        user.id,
        status=status,
        limit=limit,
        offset=skip,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    total = repo.count_user_conversations(user.id, status=status)

    return ConversationListResponse(
        conversations=[_conversation_to_list_item(c) for c in conversations],
        total=total,
        limit=limit,
        skip=skip,
    )


@router.post("", response_model=ConversationResponse, status_code=201)
async def create_conversation(
    body: Optional[ConversationCreateRequest] = None,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ConversationResponse:
    """
    Start an empty conversation.

    Model and settings default to the caller's preferences.
    """
    body = body or ConversationCreateRequest()
    title = (body.title or "").strip() or DEFAULT_TITLE
    if len(title) > 100:
        raise ValidationError("Title cannot exceed 100 characters")

    conversation = ConversationRepository(session).create_for_user(
        user.id,
        title=title,
        ai_model=_parse_ai_model(body.ai_model, user),
        settings=_initial_settings(user, body.settings),
    )
    UserRepository(session).update_stats(user, StatsKind.CONVERSATION)

    return ConversationResponse(
        conversation=_conversation_to_detail(conversation),
        message="Conversation created successfully",
    )


@router.get("/search/{query}", response_model=ConversationSearchResponse)
async def search_conversations(
    query: str,
    limit: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ConversationSearchResponse:
    """
    Search active conversations by title, message content and tags.

    The query is matched literally and case-insensitively.
    """
    conversations = ConversationRepository(session).search_conversations(
        user.id, query, limit=limit, offset=skip
    )
    return ConversationSearchResponse(
        conversations=[_conversation_to_list_item(c) for c in conversations],
        query=query,
    )


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ConversationResponse:
    """Get a conversation with all its messages."""
    conversation = ConversationRepository(session).get_owned(conversation_id, user.id)
    return ConversationResponse(conversation=_conversation_to_detail(conversation))


@router.put("/{conversation_id}", response_model=ConversationResponse)
async def update_conversation(
    conversation_id: UUID,
    body: ConversationUpdateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ConversationResponse:
    """Update title, summary, tags or the favorite flag."""
    repo = ConversationRepository(session)
    conversation = repo.get_owned(conversation_id, user.id)
    repo.update_details(
        conversation,
        title=body.title,
        summary=body.summary,
        tags=body.tags,
        is_favorite=body.is_favorite,
    )
    return ConversationResponse(
        conversation=_conversation_to_detail(conversation),
        message="Conversation updated successfully",
    )


@router.delete("/{conversation_id}", response_model=SuccessResponse)
async def delete_conversation(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> SuccessResponse:
    """Soft-delete a conversation. It can be brought back with /restore."""
    repo = ConversationRepository(session)
    repo.soft_delete(repo.get_owned(conversation_id, user.id))
    return SuccessResponse(message="Conversation deleted successfully")


@router.put("/{conversation_id}/archive", response_model=ConversationResponse)
async def archive_conversation(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ConversationResponse:
    repo = ConversationRepository(session)
    conversation = repo.archive(repo.get_owned(conversation_id, user.id))
    return ConversationResponse(
        conversation=_conversation_to_detail(conversation),
        message="Conversation archived successfully",
    )


@router.put("/{conversation_id}/restore", response_model=ConversationResponse)
async def restore_conversation(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ConversationResponse:
    repo = ConversationRepository(session)
    conversation = repo.restore(repo.get_owned(conversation_id, user.id))
    return ConversationResponse(
        conversation=_conversation_to_detail(conversation),
        message="Conversation restored successfully",
    )


@router.put("/{conversation_id}/favorite", response_model=FavoriteResponse)
async def toggle_favorite(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> FavoriteResponse:
    repo = ConversationRepository(session)
    is_favorite = repo.toggle_favorite(repo.get_owned(conversation_id, user.id))
    action = "added to" if is_favorite else "removed from"
    return FavoriteResponse(
        is_favorite=is_favorite,
        message=f"Conversation {action} favorites",
    )


@router.get("/{conversation_id}/stats", response_model=ConversationStatsResponse)
async def get_conversation_stats(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ConversationStatsResponse:
    """
    Get conversation statistics.

    Duration is recalculated from the message timestamps; messageTypes counts
    messages per content type.
    """
    conversation = ConversationRepository(session).get_owned(conversation_id, user.id)
    stats = {
        **conversation.stats,
        "duration": conversation.calculate_duration(),
        "message_types": conversation.message_type_breakdown(),
    }
    return ConversationStatsResponse(stats=ConversationStatsDetail(**stats))


@router.get("/{conversation_id}/export", response_model=ExportResponse)
async def export_conversation(
    conversation_id: UUID,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ExportResponse:
    """Dump a conversation and every message as JSON."""
    conversation = ConversationRepository(session).get_owned(conversation_id, user.id)
    export_data = ExportData(
        conversation=ExportConversation.model_validate(conversation),
        messages=[_message_to_response(m) for m in conversation.messages],
        export_date=datetime.now(UTC),
    )
    return ExportResponse(export_data=export_data)
