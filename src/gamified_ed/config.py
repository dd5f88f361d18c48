"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# Fallback secret the legacy deployment started with when JWT_SECRET was unset.
INSECURE_JWT_SECRETS = frozenset({"change_this_secret", "secret", "changeme"})
MIN_JWT_SECRET_LENGTH = 32


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if 'server' in data:
            flattened['host'] = data['server'].get('host')
            flattened['port'] = data['server'].get('port')
            flattened['cors_origins'] = data['server'].get('cors_origins')
        if 'auth' in data:
            flattened['jwt_algorithm'] = data['auth'].get('jwt_algorithm')
            flattened['token_expire_days'] = data['auth'].get('token_expire_days')
            flattened['bcrypt_rounds'] = data['auth'].get('bcrypt_rounds')
        if 'mongodb' in data:
            flattened['mongodb_database'] = data['mongodb'].get('database')
        if 'embedding' in data:
            flattened['embedding_model'] = data['embedding'].get('model')

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Literal["development", "production"] = Field(default="development")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Auth
    jwt_secret: str = Field(description="Signing key for bearer tokens")
    jwt_algorithm: str = Field(default="HS256")
    token_expire_days: int = Field(default=7)
    bcrypt_rounds: int = Field(default=10)

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017/gamified_ed")
    mongodb_database: str = Field(default="gamified_ed")

    # Embeddings (optional: None disables profile embeddings)
    openai_api_key: str | None = Field(default=None)
    embedding_model: str = Field(default="text-embedding-3-small")

    @field_validator("jwt_secret")
    @classmethod
    def _reject_insecure_secret(cls, value: str) -> str:
        if value.strip().lower() in INSECURE_JWT_SECRETS:
            raise ValueError("JWT_SECRET is set to a known insecure default")
        if len(value) < MIN_JWT_SECRET_LENGTH:
            raise ValueError(
                f"JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters. "
                "Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
            )
        return value

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
