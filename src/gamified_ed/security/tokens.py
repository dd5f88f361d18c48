"""Password hashing and bearer token issuance/verification."""

from datetime import datetime, timedelta, timezone

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from gamified_ed.config import Settings
from gamified_ed.errors import AuthError

logger = structlog.get_logger()


class TokenClaims(BaseModel):
    """Identity claims carried by a bearer token."""

    id: str
    username: str
    email: str


class TokenService:
    """Hashes passwords with bcrypt and signs/verifies JWT bearer tokens.

    Args:
        secret: Process-wide signing key.
        algorithm: JWT signing algorithm.
        expire_days: Token lifetime from issuance.
        bcrypt_rounds: bcrypt work factor.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expire_days: int = 7,
        bcrypt_rounds: int = 10,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.expire_days = expire_days
        self.pwd_context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expire_days=settings.token_expire_days,
            bcrypt_rounds=settings.bcrypt_rounds,
        )

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Check a plaintext password against a stored hash.

        A malformed or unrecognised hash counts as a mismatch.
        """
        try:
            return self.pwd_context.verify(password, password_hash)
        except (ValueError, TypeError):
            logger.warning("password_hash_unverifiable")
            return False

    def issue_token(self, user_id: str, username: str, email: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": user_id,
            "username": username,
            "email": email,
            "iat": now,
            "exp": now + timedelta(days=self.expire_days),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> TokenClaims:
        """Decode a bearer token, checking signature and expiry.

        Raises:
            AuthError: For any malformed, expired or badly signed token.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
            return TokenClaims.model_validate(payload)
        except (JWTError, PydanticValidationError):
            raise AuthError("Invalid token")
