"""Tests for the simulated assistant capabilities."""

import asyncio
import random
from unittest.mock import patch

import pytest

from akshara.models.db import User
from akshara.services.assistant import (
    DEFAULT_RESPONSES,
    SAMPLE_TRANSCRIPTIONS,
    CannedReplyGenerator,
    CannedTranscriber,
    ReplyGenerator,
    ai_status,
    get_reply_generator,
    get_transcriber,
)


class TestCannedReplyGenerator:
    """Tests for CannedReplyGenerator."""

    def test_reply_uses_a_template(self):
        generator = CannedReplyGenerator(rng=random.Random(1))

        reply = asyncio.run(generator.generate_reply("book a table", []))

        assert any(
            reply == template.format(message="book a table")
            for template in DEFAULT_RESPONSES
        )
        assert '"book a table"' in reply

    def test_same_seed_same_reply(self):
        replies = [
            asyncio.run(
                CannedReplyGenerator(rng=random.Random(7)).generate_reply("hi", [])
            )
            for _ in range(2)
        ]

        assert replies[0] == replies[1]

    def test_custom_responses(self):
        generator = CannedReplyGenerator(responses=["Echo: {message}"])

        assert asyncio.run(generator.generate_reply("ping", [])) == "Echo: ping"

    def test_requires_responses(self):
        with pytest.raises(ValueError):
            CannedReplyGenerator(responses=[])

    def test_delay_drawn_from_range(self):
        generator = CannedReplyGenerator(
            min_delay=0.5, max_delay=1.5, rng=random.Random(3)
        )

        async def fake_sleep(seconds):
            fake_sleep.calls.append(seconds)

        fake_sleep.calls = []
        with patch("akshara.services.assistant.asyncio.sleep", fake_sleep):
            asyncio.run(generator.generate_reply("hi", []))

        assert len(fake_sleep.calls) == 1
        assert 0.5 <= fake_sleep.calls[0] <= 1.5

    def test_no_delay_by_default(self):
        async def fail_sleep(seconds):
            raise AssertionError("should not sleep")

        with patch("akshara.services.assistant.asyncio.sleep", fail_sleep):
            asyncio.run(CannedReplyGenerator().generate_reply("hi", []))


class TestCannedTranscriber:
    """Tests for CannedTranscriber."""

    def test_returns_sample_sentence(self):
        text = asyncio.run(
            CannedTranscriber(rng=random.Random(0)).transcribe("base64-audio")
        )

        assert text in SAMPLE_TRANSCRIPTIONS

    def test_empty_when_nothing_configured(self):
        assert asyncio.run(CannedTranscriber(transcriptions=[]).transcribe("x")) == ""


class TestDependencies:
    """Tests for the FastAPI dependency factories."""

    def test_reply_generator_uses_settings(self):
        from akshara.config import settings

        generator = get_reply_generator()

        assert isinstance(generator, ReplyGenerator)
        assert generator.min_delay == settings.assistant_min_delay
        assert generator.max_delay == settings.assistant_max_delay

    def test_transcriber_uses_settings(self):
        from akshara.config import settings

        transcriber = get_transcriber()

        assert transcriber.min_delay == settings.transcription_min_delay
        assert transcriber.max_delay == settings.transcription_max_delay


class TestAIStatus:
    """Tests for ai_status descriptor."""

    def test_reflects_preferences(self):
        user = User(username="carol", email="carol@example.com")
        user.update_preferences(ai_model="hybrid", offline_mode=False)

        status = ai_status(user)

        assert status["model"] == "hybrid"
        assert status["offline"] is False
        assert status["status"] == "active"
        assert status["capabilities"]["voice_processing"] is True
        assert status["capabilities"]["image_processing"] is False
