"""
Assistant API routes.

Text and voice turns: each appends the user's message and the assistant's
reply to a conversation (starting one when none is given).
"""

import logging
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from akshara.api.auth import get_current_user
from akshara.api.routes.conversations import _conversation_to_detail
from akshara.api.schemas import (
    AIPreferencesUpdateRequest,
    AIStatusResponse,
    ProcessTextRequest,
    ProcessTextResponse,
    ProcessVoiceRequest,
    ProcessVoiceResponse,
    UserProfile,
    UserResponse,
)
from akshara.config import settings
from akshara.db.connection import get_db
from akshara.db.repositories import ConversationRepository, UserRepository
from akshara.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from akshara.models.db import (
    ContentType,
    Conversation,
    MessageType,
    StatsKind,
    User,
    truncate_title,
)
from akshara.models.preferences import AIModel
from akshara.services.assistant import (
    ReplyGenerator,
    Transcriber,
    ai_status,
    get_reply_generator,
    get_transcriber,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _resolve_conversation(
    session: Session,
    user: User,
    conversation_id: Optional[UUID],
    first_message: str,
) -> Conversation:
    """
    Load the caller's conversation, or start one titled after `first_message`.

    A conversation owned by someone else is reported as missing.
    """
    repo = ConversationRepository(session)
    if conversation_id is not None:
        try:
            return repo.get_owned(conversation_id, user.id)
        except PermissionDeniedError:
            raise NotFoundError("Conversation not found")

    conversation = repo.create_for_user(
        user.id,
        title=truncate_title(first_message),
        ai_model=AIModel((user.preferences or {}).get("ai_model") or AIModel.LOCAL),
    )
    UserRepository(session).update_stats(user, StatsKind.CONVERSATION)
    return conversation


def _context_for(conversation: Conversation) -> list[dict[str, Any]]:
    window = (conversation.settings or {}).get(
        "context_window", settings.default_context_window
    )
    return [
        {"type": m.type.value, "content": m.content}
        for m in conversation.get_context_messages(window)
    ]


def _language(user: User) -> str:
    return (user.preferences or {}).get("language") or "en"


@router.post("/process-text", response_model=ProcessTextResponse)
async def process_text(
    body: ProcessTextRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
    generator: ReplyGenerator = Depends(get_reply_generator),
) -> ProcessTextResponse:
    """
    Send a text message and get the assistant's reply.

    Both messages are appended; the caller's message counter grows by two.
    """
    message = (body.message or "").strip()
    if not message:
        raise ValidationError("Message is required")

    conversation = _resolve_conversation(session, user, body.conversation_id, message)
    conv_repo = ConversationRepository(session)
    language = _language(user)

    conv_repo.add_message(
        conversation,
        type=MessageType.USER,
        content=message,
        content_type=ContentType.TEXT,
        metadata={"language": language},
    )
    context = body.context if body.context else _context_for(conversation)
    reply = await generator.generate_reply(message, context)
    conv_repo.add_message(
        conversation,
        type=MessageType.AI,
        content=reply,
        content_type=ContentType.TEXT,
        metadata={"language": language},
    )
    UserRepository(session).update_stats(user, StatsKind.MESSAGE, 2)

    logger.info(f"Processed text turn in conversation {conversation.id}")
    return ProcessTextResponse(
        conversation=_conversation_to_detail(conversation),
        response=reply,
        message="Message processed successfully",
    )


@router.post("/process-voice", response_model=ProcessVoiceResponse)
async def process_voice(
    body: ProcessVoiceRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
    generator: ReplyGenerator = Depends(get_reply_generator),
    transcriber: Transcriber = Depends(get_transcriber),
) -> ProcessVoiceResponse:
    """
    Send recorded audio and get the assistant's reply.

    The transcription is stored as a voice message. Message counter +2,
    voice counter +1.
    """
    if not body.audio_data:
        raise ValidationError("Audio data is required")

    transcribed_text = (await transcriber.transcribe(body.audio_data)).strip()
    if not transcribed_text:
        raise ValidationError("Could not transcribe audio")

    conversation = _resolve_conversation(
        session, user, body.conversation_id, transcribed_text
    )
    conv_repo = ConversationRepository(session)
    language = _language(user)

    conv_repo.add_message(
        conversation,
        type=MessageType.USER,
        content=transcribed_text,
        content_type=ContentType.VOICE,
        metadata={
            "voice_duration": body.duration or 0,
            "language": language,
            "confidence": settings.voice_confidence,
        },
    )
    reply = await generator.generate_reply(transcribed_text, _context_for(conversation))
    conv_repo.add_message(
        conversation,
        type=MessageType.AI,
        content=reply,
        content_type=ContentType.TEXT,
        metadata={"language": language},
    )
    user_repo = UserRepository(session)
    user_repo.update_stats(user, StatsKind.MESSAGE, 2)
    user_repo.update_stats(user, StatsKind.VOICE, 1)

    logger.info(f"Processed voice turn in conversation {conversation.id}")
    return ProcessVoiceResponse(
        conversation=_conversation_to_detail(conversation),
        transcribed_text=transcribed_text,
        response=reply,
        message="Voice message processed successfully",
    )


@router.get("/status", response_model=AIStatusResponse)
async def get_status(user: User = Depends(get_current_user)) -> AIStatusResponse:
    return AIStatusResponse(status=ai_status(user))


@router.put("/preferences", response_model=UserResponse)
async def update_ai_preferences(
    body: AIPreferencesUpdateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> UserResponse:
    """Update the assistant-related subset of the caller's preferences."""
    UserRepository(session).update_preferences(user, **body.model_dump())
    return UserResponse(
        user=UserProfile.model_validate(user),
        message="Preferences updated successfully",
    )
