"""Request bodies accepted by the REST API."""

from typing import Any

from pydantic import ConfigDict, Field, field_validator

from gamified_ed.models.user import CamelModel


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class RegisterRequest(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str | None = None
    username: str = Field(min_length=1)
    email: str = Field(min_length=1)
    age: int | None = None
    standard: str | None = None
    password: str = Field(min_length=1)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _strip_names(cls, value: Any) -> Any:
        return _strip(value)


class LoginRequest(CamelModel):
    identifier: str = Field(min_length=1)  # username or email
    password: str = Field(min_length=1)


class ProfileUpdateRequest(CamelModel):
    bio: str | None = None
    school: str | None = None
    subjects: list[str] | None = None
    avatar_url: str | None = None
    age: int | None = None
    standard: str | None = None

    @field_validator("subjects", mode="before")
    @classmethod
    def _wrap_single_subject(cls, value: Any) -> Any:
        if value is None or isinstance(value, list):
            return value
        return [value]


class UserUpdateRequest(CamelModel):
    """Whitelisted direct-overwrite fields plus an optional question to record.

    Unknown keys are ignored rather than rejected.
    """

    model_config = ConfigDict(validate_default=False)

    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = None
    age: int | None = None
    standard: str | None = None
    bio: str | None = None
    school: str | None = None
    subjects: list[str] | None = None
    avatar_url: str | None = None
    xp: int | None = None
    game_points: int | None = None
    games_won: int | None = None
    questions_solved: int | None = None
    badges: list[str] | None = None

    questions: list[dict[str, Any]] | None = None

    @field_validator(
        "first_name", "xp", "game_points", "games_won", "questions_solved",
        "badges", "subjects",
        mode="before",
    )
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be null")
        return value

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _strip_names(cls, value: Any) -> Any:
        return _strip(value)

    def field_updates(self) -> dict[str, Any]:
        """Explicitly supplied whitelisted fields, keyed by stored (camelCase) name."""
        return self.model_dump(
            by_alias=True, exclude_unset=True, exclude={"questions"}
        )
