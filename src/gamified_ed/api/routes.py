"""REST API routes for accounts, profiles, the leaderboard and question history."""

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from fastapi import APIRouter, Depends

from gamified_ed.api.deps import get_current_claims, get_embedder, get_store, get_tokens
from gamified_ed.embeddings.client import EmbeddingClient
from gamified_ed.embeddings.profile_text import profile_update_text, registration_profile_text
from gamified_ed.errors import (
    AppError,
    AuthError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from gamified_ed.models.requests import (
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    UserUpdateRequest,
)
from gamified_ed.models.user import Embedding, EmbeddingSource, User
from gamified_ed.security.tokens import TokenClaims, TokenService
from gamified_ed.storage.user_store import UserStore, parse_question

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


@contextmanager
def internal_errors(event: str) -> Iterator[None]:
    """Let AppErrors through; log anything else and answer with a generic 500."""
    try:
        yield
    except AppError:
        raise
    except Exception:
        logger.exception(event)
        raise InternalError()


def _auth_response(user: User, tokens: TokenService) -> dict:
    return {
        "token": tokens.issue_token(user.id, user.username, user.email),
        "user": user.summary(),
    }


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"ok": True}


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    store: UserStore = Depends(get_store),
    tokens: TokenService = Depends(get_tokens),
    embedder: EmbeddingClient = Depends(get_embedder),
) -> dict:
    """Create an account and return a bearer token.

    The profile embedding is best-effort; registration succeeds without it.
    """
    with internal_errors("register_failed"):
        if await store.identity_taken(body.username, body.email):
            raise ConflictError("User already exists")

        user = User(
            first_name=body.first_name,
            last_name=body.last_name,
            username=body.username,
            email=body.email,
            password_hash=tokens.hash_password(body.password),
            age=body.age,
            standard=body.standard,
        )

        profile_text = registration_profile_text(
            body.first_name, body.last_name, body.username, body.email, body.standard
        )
        vector = await embedder.embed(profile_text)
        if vector is not None:
            user.embeddings.append(
                Embedding(text=profile_text, vector=vector, source=EmbeddingSource.REGISTER)
            )

        user = await store.create(user, check_existing=False)
        response = _auth_response(user, tokens)

    logger.info("user_registered", user_id=user.id, embedded=vector is not None)
    return response


@router.post("/login")
async def login(
    body: LoginRequest,
    store: UserStore = Depends(get_store),
    tokens: TokenService = Depends(get_tokens),
) -> dict:
    """Exchange a username or email plus password for a bearer token."""
    with internal_errors("login_failed"):
        user = await store.find_by_identifier(body.identifier)
        if user is None or not tokens.verify_password(body.password, user.password_hash):
            raise AuthError("Invalid credentials")
        return _auth_response(user, tokens)


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    claims: TokenClaims = Depends(get_current_claims),
    store: UserStore = Depends(get_store),
    embedder: EmbeddingClient = Depends(get_embedder),
) -> dict:
    """Update profile fields and re-embed the resulting profile text."""
    with internal_errors("profile_update_failed"):
        user = await store.find_by_id(claims.id)
        if user is None:
            raise NotFoundError("Not found")

        updated = user.model_copy(update=body.model_dump(exclude_none=True))
        profile_text = profile_update_text(updated)
        vector = await embedder.embed(profile_text)
        embedding = None
        if vector is not None:
            embedding = Embedding(
                text=profile_text, vector=vector, source=EmbeddingSource.PROFILE_UPDATE
            )

        user = await store.save_profile(
            claims.id, body.model_dump(by_alias=True, exclude_none=True), embedding
        )
        return {"message": "Profile updated", "xp": user.xp}


@router.get("/leaderboard")
async def leaderboard(store: UserStore = Depends(get_store)) -> list[dict]:
    """All users ranked by xp, highest first."""
    with internal_errors("leaderboard_failed"):
        entries = await store.list_for_leaderboard()
        return [entry.model_dump(by_alias=True) for entry in entries]


@router.get("/me")
async def get_me(
    claims: TokenClaims = Depends(get_current_claims),
    store: UserStore = Depends(get_store),
) -> dict:
    """The caller's full user document, without the password hash."""
    with internal_errors("get_me_failed"):
        user = await store.find_by_id(claims.id)
        if user is None:
            raise NotFoundError("User not found")
        return user.public_dict()


@router.put("/user")
async def update_user(
    body: UserUpdateRequest,
    claims: TokenClaims = Depends(get_current_claims),
    store: UserStore = Depends(get_store),
) -> dict:
    """Overwrite whitelisted fields and/or record one answered question."""
    with internal_errors("user_update_failed"):
        fields = body.field_updates()
        question = parse_question(body.questions[0]) if body.questions else None
        if not fields and question is None:
            raise ValidationError("No valid fields provided for update")

        user = await store.update(claims.id, fields, question=question)
        return {"message": "User updated successfully", "user": user.public_dict()}
