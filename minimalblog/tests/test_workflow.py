"""Tests for the admin lock, the upvote record and the upvote action."""

import json

import pytest

from conftest import FakeRemoteStore, make_record
from minimalblog.errors import AdminLocked, PersistenceFailure, ValidationError
from minimalblog.models.blog import BlogPostCreate
from minimalblog.services.local_storage import CookieKeyValueStore
from minimalblog.services.repository import SAMPLE_POST_ID, BlogRepository
from minimalblog.services.workflow import (
    INVALID_CODE_MESSAGE,
    AdminSession,
    AdminSessions,
    AdminState,
    UpvotedSet,
    upvote,
)


class TestAdminSession:
    def test_starts_locked(self):
        assert AdminSession("CODE").state is AdminState.LOCKED

    def test_wrong_code_stays_locked_with_error(self):
        session = AdminSession("CODE")
        assert session.unlock("nope") is False
        assert session.state is AdminState.LOCKED
        assert session.error == INVALID_CODE_MESSAGE

    def test_repeated_failures_do_not_lock_out(self):
        session = AdminSession("CODE")
        for _ in range(10):
            session.unlock("nope")
        assert session.unlock("CODE") is True
        assert session.error is None

    def test_code_is_trimmed(self):
        session = AdminSession("CODE")
        assert session.unlock("  CODE ") is True

    def test_empty_configured_code_never_unlocks(self):
        session = AdminSession("")
        assert session.unlock("") is False
        assert session.unlocked is False

    async def test_publish_requires_unlock(self, local_repository):
        session = AdminSession("CODE")
        with pytest.raises(AdminLocked):
            await session.publish(
                local_repository,
                BlogPostCreate(title="T", content="C", author_name="A"),
            )

    async def test_publish_relocks(self, local_repository):
        session = AdminSession("CODE")
        session.unlock("CODE")

        post = await session.publish(
            local_repository, BlogPostCreate(title="T", content="C", author_name="A")
        )

        assert post.title == "T"
        assert session.state is AdminState.LOCKED

    async def test_invalid_post_keeps_session_unlocked(self, local_repository):
        session = AdminSession("CODE")
        session.unlock("CODE")

        with pytest.raises(ValidationError):
            await session.publish(local_repository, BlogPostCreate(title="T"))

        assert session.unlocked is True


class TestAdminSessions:
    def test_new_session_when_cookie_unknown(self):
        sessions = AdminSessions("CODE")
        session_id, session = sessions.get("made-up")
        assert session_id != "made-up"
        assert session.unlocked is False

    def test_same_session_returned_for_known_id(self):
        sessions = AdminSessions("CODE")
        session_id, session = sessions.get(None)
        session.unlock("CODE")
        again_id, again = sessions.get(session_id)
        assert again_id == session_id
        assert again is session

    def test_oldest_sessions_evicted(self):
        sessions = AdminSessions("CODE", max_size=2)
        first_id, _ = sessions.get(None)
        sessions.get(None)
        sessions.get(None)
        assert len(sessions) == 2
        new_id, _ = sessions.get(first_id)
        assert new_id != first_id


class TestUpvotedSet:
    def test_add_persists_json_array(self):
        storage = CookieKeyValueStore({})
        upvoted = UpvotedSet(storage)

        assert upvoted.add("blog_1") is True
        assert upvoted.add("blog_1") is False

        assert json.loads(storage.get_item("upvotedBlogs")) == ["blog_1"]
        assert len(upvoted) == 1

    def test_loads_existing_ids_without_duplicates(self):
        storage = CookieKeyValueStore({})
        storage.set_item("upvotedBlogs", json.dumps(["a", "b", "a", 3]))
        upvoted = UpvotedSet(storage)
        assert list(upvoted) == ["a", "b"]

    def test_malformed_value_reads_as_empty(self):
        storage = CookieKeyValueStore({})
        storage.set_item("upvotedBlogs", "{not json")
        assert len(UpvotedSet(storage)) == 0


class TestUpvote:
    async def test_first_upvote_counts(self, local_repository):
        upvoted = UpvotedSet(CookieKeyValueStore({}))
        before = (await local_repository.get_by_id(SAMPLE_POST_ID)).upvotes

        result = await upvote(local_repository, upvoted, SAMPLE_POST_ID)

        assert result.counted is True
        assert result.notice == "upvoted"
        assert result.upvotes == before + 1
        assert SAMPLE_POST_ID in upvoted

    async def test_second_upvote_is_a_noop(self, local_repository):
        upvoted = UpvotedSet(CookieKeyValueStore({}))
        await upvote(local_repository, upvoted, SAMPLE_POST_ID)
        count = (await local_repository.get_by_id(SAMPLE_POST_ID)).upvotes

        result = await upvote(local_repository, upvoted, SAMPLE_POST_ID)

        assert result.counted is False
        assert result.notice == "already_upvoted"
        assert (await local_repository.get_by_id(SAMPLE_POST_ID)).upvotes == count
        assert list(upvoted) == [SAMPLE_POST_ID]

    async def test_failed_write_is_not_recorded(self, local_store):
        remote = FakeRemoteStore({"blog_1": make_record("blog_1")})
        repository = BlogRepository(local_store, remote)
        await repository.initialize()
        remote.fail_writes = True
        upvoted = UpvotedSet(CookieKeyValueStore({}))

        with pytest.raises(PersistenceFailure):
            await upvote(repository, upvoted, "blog_1")

        assert "blog_1" not in upvoted
