"""
User preference and conversation settings documents.

Stored as JSON on their owning rows and validated through these models on
every write.
"""

import enum

from pydantic import BaseModel, ConfigDict, Field


class Theme(str, enum.Enum):
    """UI theme selected by the user."""

    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


class AIModel(str, enum.Enum):
    """Where replies are produced."""

    LOCAL = "local"
    HYBRID = "hybrid"
    CLOUD = "cloud"


class UserPreferences(BaseModel):
    """Preference sub-document of a user account."""

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    theme: Theme = Theme.DARK
    voice_enabled: bool = True
    voice_speed: float = Field(default=1.0, ge=0.5, le=2.0)
    voice_volume: float = Field(default=0.8, ge=0.0, le=1.0)
    ai_model: AIModel = AIModel.LOCAL
    offline_mode: bool = True
    language: str = Field(default="en", min_length=1, max_length=16)


class ConversationSettings(BaseModel):
    """Per-conversation settings, seeded from the owner's preferences."""

    model_config = ConfigDict(extra="ignore")

    voice_enabled: bool = True
    language: str = "en"
    context_window: int = Field(default=10, ge=1, le=100)
