"""
API schemas for Akshara.

Pydantic models for request/response validation. Field names are snake_case
in Python and camelCase on the wire; requests accept either.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from akshara.models.db import ContentType, ConversationStatus, MessageType
from akshara.models.preferences import AIModel, Theme


class APIModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SuccessResponse(APIModel):
    """Envelope shared by every successful response."""

    success: bool = True
    message: Optional[str] = None


# ===== User Schemas =====


class UserPreferencesSchema(APIModel):
    """Preference sub-document."""

    theme: Theme = Theme.DARK
    voice_enabled: bool = True
    voice_speed: float = 1.0
    voice_volume: float = 0.8
    ai_model: AIModel = AIModel.LOCAL
    offline_mode: bool = True
    language: str = "en"


class UserStatsSchema(APIModel):
    """Usage counters of a user."""

    conversations: int = 0
    messages: int = 0
    voice_interactions: int = 0
    total_usage_time: int = 0


class UserProfile(APIModel):
    """Public profile of a user (never includes the password hash)."""

    id: UUID
    username: str
    email: str
    avatar: Optional[str] = None
    preferences: UserPreferencesSchema
    stats: UserStatsSchema
    is_active: bool
    last_active: datetime
    created_at: datetime
    updated_at: datetime


class RegisterRequest(APIModel):
    username: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(APIModel):
    email: str = ""
    password: str = ""


class AuthResponse(SuccessResponse):
    user: UserProfile
    token: str


class UserResponse(SuccessResponse):
    user: UserProfile


class UserStatsResponse(SuccessResponse):
    stats: UserStatsSchema


class ProfileUpdateRequest(APIModel):
    username: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None


class PreferencesUpdateRequest(APIModel):
    """Partial preference update; omitted fields keep their value."""

    theme: Optional[str] = None
    voice_enabled: Optional[bool] = None
    voice_speed: Optional[float] = None
    voice_volume: Optional[float] = None
    ai_model: Optional[str] = None
    offline_mode: Optional[bool] = None
    language: Optional[str] = None


class AIPreferencesUpdateRequest(APIModel):
    """Subset of preferences exposed under /ai/preferences."""

    ai_model: Optional[str] = None
    offline_mode: Optional[bool] = None
    voice_enabled: Optional[bool] = None
    voice_speed: Optional[float] = None
    voice_volume: Optional[float] = None
    language: Optional[str] = None


class PasswordChangeRequest(APIModel):
    current_password: str = ""
    new_password: str = ""


# ===== Conversation Schemas =====


class MessageResponse(APIModel):
    """Message as embedded in a conversation."""

    type: MessageType
    content: str
    content_type: ContentType
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class ConversationStatsSchema(APIModel):
    """Derived statistics of a conversation."""

    total_messages: int = 0
    user_messages: int = 0
    ai_messages: int = 0
    voice_messages: int = 0
    duration: float = 0
    tokens_used: int = 0


class ConversationListItem(APIModel):
    """Conversation without its messages."""

    id: UUID
    user_id: UUID
    title: Optional[str] = None
    summary: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    ai_model: AIModel
    settings: dict[str, Any] = Field(default_factory=dict)
    status: ConversationStatus
    is_favorite: bool
    stats: ConversationStatsSchema
    created_at: datetime
    updated_at: datetime
    last_message_at: datetime


class ConversationDetail(ConversationListItem):
    """Conversation with all messages in arrival order."""

    messages: list[MessageResponse] = Field(default_factory=list)


class ConversationCreateRequest(APIModel):
    title: Optional[str] = None
    ai_model: Optional[str] = None
    settings: Optional[dict[str, Any]] = None


class ConversationUpdateRequest(APIModel):
    title: Optional[str] = None
    summary: Optional[str] = None
    tags: Optional[list[str]] = None
    is_favorite: Optional[bool] = None


class ConversationResponse(SuccessResponse):
    conversation: ConversationDetail


class ConversationListResponse(SuccessResponse):
    conversations: list[ConversationListItem]
    total: int
    limit: int
    skip: int


class ConversationSearchResponse(SuccessResponse):
    conversations: list[ConversationListItem]
    query: str


class FavoriteResponse(SuccessResponse):
    is_favorite: bool


class ConversationStatsDetail(ConversationStatsSchema):
    """Stats snapshot with on-demand duration and per-medium counts."""

    average_response_time: str = "0.5s"
    message_types: dict[str, int] = Field(default_factory=dict)


class ConversationStatsResponse(SuccessResponse):
    stats: ConversationStatsDetail


class ExportConversation(APIModel):
    id: UUID
    title: Optional[str] = None
    summary: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    stats: ConversationStatsSchema


class ExportData(APIModel):
    conversation: ExportConversation
    messages: list[MessageResponse]
    export_date: datetime
    format: str = "json"


class ExportResponse(SuccessResponse):
    export_data: ExportData


# ===== AI Schemas =====


class ProcessTextRequest(APIModel):
    message: Optional[str] = None
    conversation_id: Optional[UUID] = None
    context: Optional[list[Any]] = None


class ProcessVoiceRequest(APIModel):
    audio_data: Optional[str] = None
    conversation_id: Optional[UUID] = None
    duration: Optional[float] = None


class ProcessTextResponse(SuccessResponse):
    conversation: ConversationDetail
    response: str


class ProcessVoiceResponse(ProcessTextResponse):
    transcribed_text: str


class AICapabilities(APIModel):
    text_processing: bool
    voice_processing: bool
    image_processing: bool
    file_processing: bool


class AIPerformance(APIModel):
    response_time: str
    accuracy: str
    memory_usage: str


class AIStatus(APIModel):
    model: str
    status: str
    offline: bool
    last_updated: datetime
    capabilities: AICapabilities
    performance: AIPerformance


class AIStatusResponse(SuccessResponse):
    status: AIStatus


# ===== Health =====


class HealthResponse(SuccessResponse):
    status: str
    timestamp: datetime
    database: str
