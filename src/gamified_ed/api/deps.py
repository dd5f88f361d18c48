"""FastAPI dependencies: collaborators held on app.state and the bearer gate."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gamified_ed.embeddings.client import EmbeddingClient
from gamified_ed.errors import AuthError
from gamified_ed.security.tokens import TokenClaims, TokenService
from gamified_ed.storage.user_store import UserStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_store(request: Request) -> UserStore:
    return request.app.state.store


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_embedder(request: Request) -> EmbeddingClient:
    return request.app.state.embedder


async def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_tokens),
) -> TokenClaims:
    """Require `Authorization: Bearer <token>` and return its verified claims."""
    if credentials is None:
        raise AuthError("Missing token")
    return tokens.verify_token(credentials.credentials)
