"""
Assistant capabilities used by the AI routes.

Replies and transcriptions are simulated: each implementation waits a random
delay and returns one of a fixed set of strings. Routes depend on the
abstract classes so a real model can be swapped in without touching the
conversation logic.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Optional, Sequence

from akshara.config import settings

if TYPE_CHECKING:
    from akshara.models.db import User

logger = logging.getLogger(__name__)

DEFAULT_RESPONSES: tuple[str, ...] = (
    'I understand you said: "{message}". I\'m your personal AI assistant and '
    "I'm here to help you with various tasks. What would you like me to do?",
    'That\'s an interesting point about "{message}". Let me think about that '
    "and provide you with a helpful response.",
    'I\'ve processed your message: "{message}". As your AI assistant, I can '
    "help you with information, tasks, and engaging conversations.",
    'Thank you for sharing that with me. Regarding "{message}", I\'m here to '
    "assist you in any way I can.",
    'I\'ve received your message and I\'m processing it. "{message}" - let me '
    "provide you with a thoughtful response.",
)

SAMPLE_TRANSCRIPTIONS: tuple[str, ...] = (
    "Hello, how are you today?",
    "Can you help me with a question?",
    "What's the weather like?",
    "Tell me a joke",
    "I need some assistance",
)


class ReplyGenerator(ABC):
    """Produces the assistant's reply to a user message."""

    @abstractmethod
    async def generate_reply(self, message: str, context: Sequence[Any]) -> str:
        """Generate a reply.

        Args:
            message: The user's latest message
            context: Most recent conversation messages, oldest first

        Returns:
            Reply text
        """
        ...


class Transcriber(ABC):
    """Turns recorded audio into text."""

    @abstractmethod
    async def transcribe(self, audio_data: str) -> str:
        """Return the text spoken in `audio_data` (empty if nothing was heard)."""
        ...


async def _simulate_latency(
    min_delay: float, max_delay: float, rng: random.Random
) -> None:
    if max_delay <= 0:
        return
    await asyncio.sleep(rng.uniform(max(min_delay, 0.0), max_delay))


class CannedReplyGenerator(ReplyGenerator):
    """Picks a reply template uniformly at random after an artificial delay."""

    def __init__(
        self,
        responses: Sequence[str] = DEFAULT_RESPONSES,
        min_delay: float = 0.0,
        max_delay: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        if not responses:
            raise ValueError("At least one response is required")
        self.responses = tuple(responses)
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.rng = rng or random.Random()

    async def generate_reply(self, message: str, context: Sequence[Any]) -> str:
        await _simulate_latency(self.min_delay, self.max_delay, self.rng)
        template = self.rng.choice(self.responses)
        logger.debug(f"Generated canned reply with {len(context)} context messages")
        return template.format(message=message)


class CannedTranscriber(Transcriber):
    """Returns one of a few sample sentences regardless of the audio."""

    def __init__(
        self,
        transcriptions: Sequence[str] = SAMPLE_TRANSCRIPTIONS,
        min_delay: float = 0.0,
        max_delay: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        self.transcriptions = tuple(transcriptions)
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.rng = rng or random.Random()

    async def transcribe(self, audio_data: str) -> str:
        await _simulate_latency(self.min_delay, self.max_delay, self.rng)
        if not self.transcriptions:
            return ""
        return self.rng.choice(self.transcriptions)


def get_reply_generator() -> ReplyGenerator:
    """FastAPI dependency providing the configured reply generator."""
    return CannedReplyGenerator(
        min_delay=settings.assistant_min_delay,
        max_delay=settings.assistant_max_delay,
    )


def get_transcriber() -> Transcriber:
    """FastAPI dependency providing the configured transcriber."""
    return CannedTranscriber(
        min_delay=settings.transcription_min_delay,
        max_delay=settings.transcription_max_delay,
    )


def ai_status(user: "User") -> dict[str, Any]:
    """Static capability/status descriptor for a user's assistant."""
    preferences = user.preferences or {}
    return {
        "model": preferences.get("ai_model") or "local",
        "status": "active",
        "offline": preferences.get("offline_mode", True),
        "last_updated": datetime.now(UTC),
        "capabilities": {
            "text_processing": True,
            "voice_processing": True,
            "image_processing": False,
            "file_processing": False,
        },
        "performance": {
            "response_time": "0.5s",
            "accuracy": "95%",
            "memory_usage": "45%",
        },
    }
