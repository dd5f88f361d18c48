"""User document model and its owned sub-records."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_EMBEDDINGS = 8


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base for documents stored and served with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )


class QuestionType(StrEnum):
    OBJECTIVE = "objective"
    SUBJECTIVE = "subjective"


class Difficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class EmbeddingSource(StrEnum):
    """Which operation produced an embedding record."""

    REGISTER = "register"
    PROFILE_UPDATE = "profile_update"
    USER_PROFILE = "user_profile"


class Embedding(CamelModel):
    """A profile text and the vector the embedding model produced for it."""

    text: str
    vector: list[float]
    created_at: datetime = Field(default_factory=utcnow)
    source: EmbeddingSource = EmbeddingSource.USER_PROFILE


class Question(CamelModel):
    """A single answered question in a user's history."""

    # Numeric answers (e.g. 4) are stored as their string form.
    model_config = ConfigDict(coerce_numbers_to_str=True)

    question_description: str = Field(min_length=1)
    question_type: QuestionType
    difficulty: Difficulty = Difficulty.MEDIUM
    correct_answer: str = Field(min_length=1)
    user_answer: str = Field(min_length=1)
    is_correct: bool
    answered_at: datetime = Field(default_factory=utcnow)


class User(CamelModel):
    """A registered account as stored in the users collection."""

    id: str | None = Field(
        default=None, validation_alias=AliasChoices("_id", "id"), serialization_alias="_id"
    )
    first_name: str
    last_name: str | None = None
    username: str
    email: str
    password_hash: str = Field(exclude=True)
    age: int | None = None
    standard: str | None = None
    bio: str | None = ""

    xp: int = 0
    game_points: int = 0
    games_won: int = 0
    questions_solved: int = 0
    badges: list[str] = Field(default_factory=list)

    school: str | None = None
    subjects: list[str] = Field(default_factory=list)
    avatar_url: str | None = None

    embeddings: list[Embedding] = Field(default_factory=list)
    questions: list[Question] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_object_id(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    def public_dict(self) -> dict[str, Any]:
        """JSON-safe rendering for API responses, keyed by `_id`; never includes the hash."""
        return self.model_dump(by_alias=True, mode="json")

    def summary(self) -> dict[str, Any]:
        return {"id": self.id, "username": self.username, "email": self.email, "xp": self.xp}


class LeaderboardEntry(CamelModel):
    username: str
    xp: int = 0
    game_points: int = 0
    games_won: int = 0
