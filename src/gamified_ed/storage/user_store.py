"""User persistence on MongoDB (motor).

One document per account in the ``users`` collection. Single-document
writes are atomic; uniqueness of username/email is guaranteed by unique
indexes, with a pre-insert lookup only as the fast path.
"""

from typing import Any

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from gamified_ed.config import Settings
from gamified_ed.errors import ConflictError, NotFoundError, ValidationError
from gamified_ed.models.user import (
    MAX_EMBEDDINGS,
    Embedding,
    LeaderboardEntry,
    Question,
    User,
    utcnow,
)

logger = structlog.get_logger()

USERS_COLLECTION = "users"

# Fields PUT /api/user may overwrite directly.
UPDATABLE_FIELDS = frozenset({
    "firstName",
    "lastName",
    "age",
    "standard",
    "bio",
    "school",
    "subjects",
    "avatarUrl",
    "xp",
    "gamePoints",
    "gamesWon",
    "questionsSolved",
    "badges",
})

PROFILE_FIELDS = frozenset({"bio", "school", "subjects", "avatarUrl", "age", "standard"})

LEADERBOARD_PROJECTION = {"_id": 0, "username": 1, "xp": 1, "gamePoints": 1, "gamesWon": 1}

INVALID_QUESTION_MESSAGE = "Invalid question object. Missing required fields."


def connect(settings: Settings) -> tuple[AsyncIOMotorClient, AsyncIOMotorCollection]:
    """Open a client for `settings.mongodb_uri` and return it with the users collection."""
    client = AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)
    db = client.get_default_database(settings.mongodb_database)
    return client, db[USERS_COLLECTION]


def _object_id(user_id: str) -> ObjectId | None:
    try:
        return ObjectId(user_id)
    except (InvalidId, TypeError):
        return None


def to_document(user: User) -> dict[str, Any]:
    """Render a User for storage, including the password hash the API never sees."""
    doc = user.model_dump(by_alias=True, exclude={"id"})
    doc["passwordHash"] = user.password_hash
    return doc


def parse_question(data: dict[str, Any] | Question) -> Question:
    """Validate a question payload.

    Raises:
        ValidationError: If a required field is missing or malformed.
    """
    if isinstance(data, Question):
        return data
    try:
        return Question.model_validate(data)
    except PydanticValidationError:
        raise ValidationError(INVALID_QUESTION_MESSAGE)


class UserStore:
    """Persistence operations for User documents.

    Args:
        collection: The motor collection holding user documents.
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("username", ASCENDING)], unique=True)
        await self.collection.create_index([("email", ASCENDING)], unique=True)
        await self.collection.create_index([("xp", DESCENDING)])

    async def identity_taken(self, username: str, email: str) -> bool:
        """Whether any user already holds this username or email."""
        existing = await self.collection.find_one(
            {"$or": [{"username": username}, {"email": email}]},
            projection={"_id": 1},
        )
        return existing is not None

    async def create(self, user: User, check_existing: bool = True) -> User:
        """Insert a new user.

        With `check_existing=False` the caller has already run `identity_taken`;
        the unique indexes still reject a duplicate that races in between.

        Raises:
            ConflictError: If the username or email is already taken.
        """
        if check_existing and await self.identity_taken(user.username, user.email):
            raise ConflictError("User already exists")

        doc = to_document(user)
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            logger.info("user_insert_conflict", username=user.username)
            raise ConflictError("User already exists")
        return user.model_copy(update={"id": str(result.inserted_id)})

    async def find_by_identifier(self, identifier: str) -> User | None:
        """Look a user up by username or email."""
        doc = await self.collection.find_one(
            {"$or": [{"username": identifier}, {"email": identifier}]}
        )
        return User.model_validate(doc) if doc is not None else None

    async def find_by_id(self, user_id: str) -> User | None:
        oid = _object_id(user_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return User.model_validate(doc) if doc is not None else None

    async def _apply(self, user_id: str, update: dict[str, Any]) -> User:
        oid = _object_id(user_id)
        if oid is None:
            raise NotFoundError()
        update.setdefault("$set", {})["updatedAt"] = utcnow()
        doc = await self.collection.find_one_and_update(
            {"_id": oid}, update, return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise NotFoundError()
        return User.model_validate(doc)

    async def update(
        self,
        user_id: str,
        fields: dict[str, Any],
        question: Question | None = None,
    ) -> User:
        """Overwrite whitelisted fields and optionally record one question, atomically.

        Unknown field names are dropped silently.

        Raises:
            NotFoundError: If no user has this id.
        """
        update: dict[str, Any] = {
            "$set": {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        }
        if question is not None:
            update["$push"] = {"questions": question.model_dump(by_alias=True)}
        return await self._apply(user_id, update)

    async def append_question(self, user_id: str, question: dict[str, Any] | Question) -> User:
        """Append a question to the user's history.

        Raises:
            ValidationError: If the question lacks a required field.
            NotFoundError: If no user has this id.
        """
        return await self.update(user_id, {}, question=parse_question(question))

    async def append_embedding(self, user_id: str, embedding: Embedding) -> User:
        """Append an embedding, keeping only the most recent MAX_EMBEDDINGS."""
        return await self._apply(user_id, {"$push": _capped_embedding_push(embedding)})

    async def save_profile(
        self,
        user_id: str,
        fields: dict[str, Any],
        embedding: Embedding | None = None,
    ) -> User:
        """Write profile fields and, when present, a new embedding in one update."""
        update: dict[str, Any] = {
            "$set": {k: v for k, v in fields.items() if k in PROFILE_FIELDS}
        }
        if embedding is not None:
            update["$push"] = _capped_embedding_push(embedding)
        return await self._apply(user_id, update)

    async def list_for_leaderboard(self) -> list[LeaderboardEntry]:
        """All users ordered by xp, highest first. No pagination."""
        cursor = self.collection.find({}, projection=LEADERBOARD_PROJECTION).sort(
            "xp", DESCENDING
        )
        docs = await cursor.to_list(length=None)
        return [LeaderboardEntry.model_validate(doc) for doc in docs]


def _capped_embedding_push(embedding: Embedding) -> dict[str, Any]:
    return {
        "embeddings": {
            "$each": [embedding.model_dump(by_alias=True)],
            "$slice": -MAX_EMBEDDINGS,
        }
    }
