"""Tests for UserStore against an in-memory MongoDB."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from gamified_ed.errors import ConflictError, NotFoundError, ValidationError
from gamified_ed.models.user import MAX_EMBEDDINGS, Embedding, User
from gamified_ed.storage.user_store import UserStore


def _user(username="alice", email="alice@x.com", **fields) -> User:
    return User(
        first_name=fields.pop("first_name", "Alice"),
        username=username,
        email=email,
        password_hash="$2b$04$hash",
        **fields,
    )


def _question(**overrides) -> dict:
    data = {
        "questionDescription": "2+2?",
        "questionType": "objective",
        "correctAnswer": "4",
        "userAnswer": "4",
        "isCorrect": True,
    }
    data.update(overrides)
    return data


@pytest.fixture
async def indexed_store(store):
    await store.ensure_indexes()
    return store


class TestCreate:
    async def test_create_assigns_id(self, indexed_store):
        created = await indexed_store.create(_user())
        assert created.id is not None
        found = await indexed_store.find_by_id(created.id)
        assert found.username == "alice"
        assert found.password_hash == "$2b$04$hash"

    async def test_duplicate_username_conflicts(self, indexed_store):
        await indexed_store.create(_user())
        with pytest.raises(ConflictError):
            await indexed_store.create(_user(email="other@x.com"))

    async def test_duplicate_email_conflicts(self, indexed_store):
        await indexed_store.create(_user())
        with pytest.raises(ConflictError):
            await indexed_store.create(_user(username="other"))

    async def test_unique_index_violation_maps_to_conflict(self):
        collection = MagicMock()
        collection.find_one = AsyncMock(return_value=None)
        collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("E11000 duplicate key"))
        with pytest.raises(ConflictError):
            await UserStore(collection).create(_user())

    async def test_create_can_skip_lookup(self):
        collection = MagicMock()
        collection.find_one = AsyncMock(return_value=None)
        collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
        created = await UserStore(collection).create(_user(), check_existing=False)
        assert created.id is not None
        collection.find_one.assert_not_awaited()

    async def test_identity_taken(self, store):
        await store.create(_user())
        assert await store.identity_taken("alice", "new@x.com") is True
        assert await store.identity_taken("new", "alice@x.com") is True
        assert await store.identity_taken("new", "new@x.com") is False


class TestFind:
    async def test_find_by_username_or_email(self, store):
        created = await store.create(_user())
        assert (await store.find_by_identifier("alice")).id == created.id
        assert (await store.find_by_identifier("alice@x.com")).id == created.id
        assert await store.find_by_identifier("nobody") is None

    async def test_find_by_id_unknown(self, store):
        assert await store.find_by_id(str(ObjectId())) is None

    async def test_find_by_id_malformed(self, store):
        assert await store.find_by_id("not-an-object-id") is None


class TestUpdate:
    async def test_whitelisted_fields_applied(self, store):
        created = await store.create(_user())
        updated = await store.update(created.id, {"xp": 50, "badges": ["starter"]})
        assert updated.xp == 50
        assert updated.badges == ["starter"]

    async def test_unknown_fields_ignored(self, store):
        created = await store.create(_user())
        updated = await store.update(created.id, {"passwordHash": "pwned", "role": "admin"})
        assert updated.password_hash == "$2b$04$hash"
        raw = await store.collection.find_one({"_id": ObjectId(created.id)})
        assert "role" not in raw

    async def test_unknown_user(self, store):
        with pytest.raises(NotFoundError):
            await store.update(str(ObjectId()), {"xp": 1})

    async def test_malformed_id(self, store):
        with pytest.raises(NotFoundError):
            await store.update("nope", {"xp": 1})


class TestQuestions:
    async def test_append_question(self, store):
        created = await store.create(_user())
        updated = await store.append_question(created.id, _question())
        assert len(updated.questions) == 1
        assert updated.questions[0].question_description == "2+2?"
        assert updated.questions[0].difficulty == "medium"

    async def test_history_is_append_only(self, store):
        created = await store.create(_user())
        await store.append_question(created.id, _question(questionDescription="first"))
        updated = await store.append_question(created.id, _question(questionDescription="second"))
        assert [q.question_description for q in updated.questions] == ["first", "second"]

    @pytest.mark.parametrize(
        "missing",
        ["questionDescription", "questionType", "correctAnswer", "userAnswer", "isCorrect"],
    )
    async def test_incomplete_question_rejected(self, store, missing):
        created = await store.create(_user())
        data = _question()
        del data[missing]
        with pytest.raises(ValidationError):
            await store.append_question(created.id, data)
        assert (await store.find_by_id(created.id)).questions == []

    async def test_unknown_user(self, store):
        with pytest.raises(NotFoundError):
            await store.append_question(str(ObjectId()), _question())


class TestEmbeddings:
    async def test_capped_keeping_most_recent(self, store):
        created = await store.create(_user())
        for i in range(MAX_EMBEDDINGS + 3):
            user = await store.append_embedding(
                created.id, Embedding(text=f"profile {i}", vector=[float(i)])
            )
        assert len(user.embeddings) == MAX_EMBEDDINGS
        assert user.embeddings[0].text == "profile 3"
        assert user.embeddings[-1].text == f"profile {MAX_EMBEDDINGS + 2}"

    async def test_save_profile_with_embedding(self, store):
        created = await store.create(_user())
        user = await store.save_profile(
            created.id,
            {"bio": "hi", "xp": 999},
            Embedding(text="t", vector=[1.0], source="profile_update"),
        )
        assert user.bio == "hi"
        assert user.xp == 0
        assert user.embeddings[-1].source == "profile_update"

    async def test_save_profile_without_embedding(self, store):
        created = await store.create(_user())
        user = await store.save_profile(created.id, {"school": "Wonderland High"})
        assert user.school == "Wonderland High"
        assert user.embeddings == []


class TestLeaderboard:
    async def test_sorted_by_xp_descending(self, store):
        for name, xp in [("low", 5), ("high", 90), ("mid", 40), ("zero", 0)]:
            await store.create(_user(username=name, email=f"{name}@x.com", xp=xp))
        entries = await store.list_for_leaderboard()
        assert [e.username for e in entries] == ["high", "mid", "low", "zero"]
        xps = [e.xp for e in entries]
        assert xps == sorted(xps, reverse=True)

    async def test_projection(self, store):
        await store.create(_user(xp=10, game_points=3, games_won=1))
        [entry] = await store.list_for_leaderboard()
        assert entry.model_dump(by_alias=True) == {
            "username": "alice", "xp": 10, "gamePoints": 3, "gamesWon": 1,
        }

    async def test_empty(self, store):
        assert await store.list_for_leaderboard() == []
