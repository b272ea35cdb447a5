"""
Tests for repository classes.
"""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from akshara.db.repositories import ConversationRepository, UserRepository
from akshara.exceptions import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from akshara.models.db import Conversation, ConversationStatus, StatsKind, User

T0 = datetime(2025, 5, 1, 12, 0, 0, tzinfo=UTC)


class TestUserRepository:
    """Tests for UserRepository."""

    def test_create_user(self, db_session: Session):
        repo = UserRepository(db_session)

        user = repo.create_user(
            username="  carol ", email="Carol@Example.COM", password="secret1"
        )

        assert user.id is not None
        assert user.username == "carol"
        assert user.email == "carol@example.com"
        assert user.password_hash != "secret1"
        assert user.check_password("secret1")

    @pytest.mark.parametrize(
        "username,email",
        [
            ("someone", "alice@example.com"),
            ("alice", "someone@example.com"),
            ("someone", "ALICE@example.com"),
        ],
    )
    def test_duplicate_rejected_without_insert(
        self, db_session: Session, sample_user: User, username, email
    ):
        repo = UserRepository(db_session)
        before = repo.count()

        with pytest.raises(ValidationError, match="User already exists"):
            repo.create_user(username=username, email=email, password="secret1")

        assert repo.count() == before

    def test_duplicate_insert_race_reported_as_exists(
        self, db_session: Session, sample_user: User
    ):
        repo = UserRepository(db_session)

        # Another request registered the same email after the existence check
        with patch.object(UserRepository, "exists", return_value=False):
            with pytest.raises(ValidationError, match="User already exists"):
                repo.create_user(
                    username="alice2", email="alice@example.com", password="secret1"
                )

        assert repo.count() == 1
        assert repo.get_by_email("alice@example.com").id == sample_user.id

    @pytest.mark.parametrize(
        "username,email,password,message",
        [
            ("", "c@example.com", "secret1", "All fields are required"),
            ("ab", "c@example.com", "secret1", "Username"),
            ("x" * 31, "c@example.com", "secret1", "Username"),
            ("carol", "not-an-email", "secret1", "email"),
            ("carol", "c@example.com", "12345", "Password"),
        ],
    )
    def test_create_user_validation(
        self, db_session: Session, username, email, password, message
    ):
        with pytest.raises(ValidationError, match=message):
            UserRepository(db_session).create_user(username, email, password)

    def test_find_by_credentials(self, db_session: Session, sample_user: User):
        repo = UserRepository(db_session)

        found = repo.find_by_credentials("ALICE@example.com", "password123")

        assert found.id == sample_user.id

    def test_wrong_password_and_unknown_email_look_the_same(
        self, db_session: Session, sample_user: User
    ):
        repo = UserRepository(db_session)

        with pytest.raises(AuthenticationError) as wrong_password:
            repo.find_by_credentials("alice@example.com", "nope-nope")
        with pytest.raises(AuthenticationError) as unknown_email:
            repo.find_by_credentials("nobody@example.com", "password123")

        assert type(wrong_password.value) is type(unknown_email.value)
        assert wrong_password.value.message == unknown_email.value.message

    def test_deactivated_user_cannot_log_in(
        self, db_session: Session, sample_user: User
    ):
        repo = UserRepository(db_session)
        repo.deactivate(sample_user)

        with pytest.raises(AuthenticationError):
            repo.find_by_credentials("alice@example.com", "password123")

        # Row is kept
        assert repo.get(sample_user.id) is not None

    def test_update_stats(self, db_session: Session, sample_user: User):
        repo = UserRepository(db_session)

        repo.update_stats(sample_user, StatsKind.MESSAGE, 2)
        repo.update_stats(sample_user, "voice")
        db_session.commit()

        assert sample_user.messages_count == 2
        assert sample_user.voice_interactions == 1

    def test_update_profile_uniqueness(
        self, db_session: Session, sample_user: User, other_user: User
    ):
        repo = UserRepository(db_session)

        with pytest.raises(ValidationError, match="Username already taken"):
            repo.update_profile(sample_user, username="bob")
        with pytest.raises(ValidationError, match="Email already taken"):
            repo.update_profile(sample_user, email="BOB@example.com")

    def test_update_profile(self, db_session: Session, sample_user: User):
        repo = UserRepository(db_session)

        repo.update_profile(
            sample_user,
            username="alice_w",
            email="alice.w@example.com",
            avatar="https://example.com/a.png",
        )

        assert repo.get_by_username("alice_w").id == sample_user.id
        assert repo.get_by_email("alice.w@example.com").id == sample_user.id
        assert sample_user.avatar == "https://example.com/a.png"

    def test_update_preferences_ignores_none(
        self, db_session: Session, sample_user: User
    ):
        repo = UserRepository(db_session)

        repo.update_preferences(sample_user, theme="light", language=None)

        assert sample_user.preferences["theme"] == "light"
        assert sample_user.preferences["language"] == "en"

    def test_change_password(self, db_session: Session, sample_user: User):
        repo = UserRepository(db_session)

        repo.change_password(sample_user, "password123", "new-secret")

        assert sample_user.check_password("new-secret")
        assert not sample_user.check_password("password123")

    @pytest.mark.parametrize(
        "current,new,message",
        [
            ("", "new-secret", "required"),
            ("password123", "123", "at least 6"),
            ("wrong-one", "new-secret", "Current password is incorrect"),
        ],
    )
    def test_change_password_errors(
        self, db_session: Session, sample_user: User, current, new, message
    ):
        with pytest.raises(ValidationError, match=message):
            UserRepository(db_session).change_password(sample_user, current, new)

        assert sample_user.check_password("password123")

    def test_get_or_404(self, db_session: Session):
        with pytest.raises(NotFoundError):
            UserRepository(db_session).get_or_404(uuid.uuid4())


class TestConversationRepository:
    """Tests for ConversationRepository."""

    def _make(self, db_session: Session, user: User, title: str, offset: int, **kwargs):
        repo = ConversationRepository(db_session)
        conversation = repo.create_for_user(
            user.id, title=title, created_at=T0 + timedelta(minutes=offset), **kwargs
        )
        repo.add_message(
            conversation,
            "user",
            f"About {title}",
            timestamp=T0 + timedelta(minutes=offset, seconds=5),
        )
        return conversation

    def test_get_owned(self, db_session: Session, sample_conversation, sample_user):
        repo = ConversationRepository(db_session)

        found = repo.get_owned(sample_conversation.id, sample_user.id)

        assert found.id == sample_conversation.id
        assert len(found.messages) == 2

    def test_get_owned_missing(self, db_session: Session, sample_user):
        with pytest.raises(NotFoundError, match="Conversation not found"):
            ConversationRepository(db_session).get_owned(uuid.uuid4(), sample_user.id)

    def test_get_owned_foreign(
        self, db_session: Session, sample_conversation, other_user
    ):
        with pytest.raises(PermissionDeniedError):
            ConversationRepository(db_session).get_owned(
                sample_conversation.id, other_user.id
            )

    def test_list_defaults_to_active_by_recent_activity(
        self, db_session: Session, sample_user
    ):
        first = self._make(db_session, sample_user, "First", 0)
        second = self._make(db_session, sample_user, "Second", 10)
        archived = self._make(db_session, sample_user, "Archived", 20)
        repo = ConversationRepository(db_session)
        repo.archive(archived)

        result = repo.get_user_conversations(sample_user.id)

        assert [c.id for c in result] == [second.id, first.id]
        assert repo.count_user_conversations(sample_user.id) == 2
        assert repo.count_user_conversations(sample_user.id, "archived") == 1

    def test_list_only_own(self, db_session: Session, sample_user, other_user):
        self._make(db_session, sample_user, "Mine", 0)
        self._make(db_session, other_user, "Theirs", 1)

        result = ConversationRepository(db_session).get_user_conversations(
            sample_user.id
        )

        assert [c.title for c in result] == ["Mine"]

    def test_list_sorting_and_pagination(self, db_session: Session, sample_user):
        for i, title in enumerate(["banana", "apple", "cherry"]):
            self._make(db_session, sample_user, title, i)
        repo = ConversationRepository(db_session)

        by_title = repo.get_user_conversations(
            sample_user.id, sort_by="title", sort_order="asc"
        )
        page = repo.get_user_conversations(
            sample_user.id, sort_by="createdAt", sort_order="desc", limit=1, offset=1
        )

        assert [c.title for c in by_title] == ["apple", "banana", "cherry"]
        assert [c.title for c in page] == ["apple"]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"sort_by": "password"},
            {"sort_order": "sideways"},
            {"status": "vanished"},
        ],
    )
    def test_list_rejects_bad_arguments(self, db_session: Session, sample_user, kwargs):
        with pytest.raises(ValidationError):
            ConversationRepository(db_session).get_user_conversations(
                sample_user.id, **kwargs
            )

    def test_soft_deleted_excluded_but_retrievable(
        self, db_session: Session, sample_conversation, sample_user
    ):
        repo = ConversationRepository(db_session)

        repo.soft_delete(sample_conversation)

        assert repo.get_user_conversations(sample_user.id) == []
        assert repo.get(sample_conversation.id) is not None
        assert [
            c.id for c in repo.get_user_conversations(sample_user.id, status="deleted")
        ] == [sample_conversation.id]

    def test_restore_reactivates(self, db_session: Session, sample_conversation):
        repo = ConversationRepository(db_session)

        repo.archive(sample_conversation)
        repo.restore(sample_conversation)

        assert sample_conversation.status == ConversationStatus.ACTIVE

    def test_search_matches_title_content_and_tags(
        self, db_session: Session, sample_conversation, sample_user
    ):
        repo = ConversationRepository(db_session)

        by_title = repo.search_conversations(sample_user.id, "TRIP")
        by_content = repo.search_conversations(sample_user.id, "lisbon")
        by_tag = repo.search_conversations(sample_user.id, "summer")

        for result in (by_title, by_content, by_tag):
            assert [c.id for c in result] == [sample_conversation.id]
        assert repo.search_conversations(sample_user.id, "tokyo") == []

    def test_search_wildcards_are_literal(self, db_session: Session, sample_user):
        self._make(db_session, sample_user, "Growth 100% plan", 0)
        self._make(db_session, sample_user, "snake_case notes", 1)
        self._make(db_session, sample_user, "Plain notes", 2)
        repo = ConversationRepository(db_session)

        percent = repo.search_conversations(sample_user.id, "%")
        underscore = repo.search_conversations(sample_user.id, "_")

        assert [c.title for c in percent] == ["Growth 100% plan"]
        assert [c.title for c in underscore] == ["snake_case notes"]

    def test_search_skips_inactive_and_foreign(
        self, db_session: Session, sample_conversation, sample_user, other_user
    ):
        repo = ConversationRepository(db_session)
        self._make(db_session, other_user, "Trip to Rome", 0)
        repo.archive(sample_conversation)

        assert repo.search_conversations(sample_user.id, "trip") == []

    def test_search_empty_term(self, db_session: Session, sample_user):
        with pytest.raises(ValidationError):
            ConversationRepository(db_session).search_conversations(sample_user.id, "")

    def test_add_message_updates_stats(self, db_session: Session, sample_conversation):
        repo = ConversationRepository(db_session)

        repo.add_message(sample_conversation, "user", "Hola", content_type="voice")
        db_session.commit()

        assert sample_conversation.total_messages == 3
        assert sample_conversation.voice_messages == 1

    def test_update_details(self, db_session: Session, sample_conversation):
        repo = ConversationRepository(db_session)

        repo.update_details(
            sample_conversation,
            title="  Lisbon trip ",
            summary="Planning",
            tags=["travel", "portugal"],
            is_favorite=True,
        )

        assert sample_conversation.title == "Lisbon trip"
        assert sample_conversation.summary == "Planning"
        assert sample_conversation.tags == ["travel", "portugal"]
        assert sample_conversation.is_favorite is True

    def test_update_details_empty_tags_clear(
        self, db_session: Session, sample_conversation
    ):
        repo = ConversationRepository(db_session)

        repo.update_details(sample_conversation, title="", summary="", tags=[])

        assert sample_conversation.tags == []
        assert sample_conversation.title == "Trip planning"

    def test_update_details_tags_omitted(
        self, db_session: Session, sample_conversation
    ):
        ConversationRepository(db_session).update_details(
            sample_conversation, title="Lisbon"
        )

        assert sample_conversation.tags == ["travel", "Summer"]

    def test_update_details_title_too_long(
        self, db_session: Session, sample_conversation
    ):
        with pytest.raises(ValidationError):
            ConversationRepository(db_session).update_details(
                sample_conversation, title="t" * 101
            )

    def test_toggle_favorite(self, db_session: Session, sample_conversation):
        repo = ConversationRepository(db_session)

        assert repo.toggle_favorite(sample_conversation) is True
        assert repo.toggle_favorite(sample_conversation) is False
