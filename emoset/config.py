# pyright: reportExplicitAny=false
"""Configuration management for Emoset."""

from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_EMOTIONS = ["happy", "sad", "angry", "fearful", "surprised", "neutral"]

# Labels used by the original Turkish-speaking team, accepted on CSV import
DEFAULT_EMOTION_ALIASES = {
    "Mutlu": "happy",
    "Üzgün": "sad",
    "Kızgın": "angry",
    "Korkulu": "fearful",
    "Şaşkın": "surprised",
    "Nötr": "neutral",
}


class DatasetSplit(str, Enum):
    """Partition of curated clips for model training."""

    TRAIN = "train"
    TEST = "test"
    VALIDATION = "validation"

    @classmethod
    def parse(cls, value: str | None) -> DatasetSplit | None:
        """Case-insensitive lookup; returns None for unknown or empty values."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class UserAccount(BaseModel):
    """A team member allowed to sign in."""

    email: str
    password_hash: str = Field(..., description="pbkdf2_sha256$<iterations>$<salt>$<hex digest>")
    name: str | None = None


class AuthConfig(BaseModel):
    """Authentication configuration."""

    users: list[UserAccount] = Field(default_factory=list, description="Accounts allowed to sign in")
    jwt_secret: str = Field(..., description="Secret key for JWT signing")
    token_days: int = Field(default=30, description="JWT lifetime in days")

    def find_user(self, email: str) -> UserAccount | None:
        wanted = email.strip().lower()
        for user in self.users:
            if user.email.lower() == wanted:
                return user
        return None


class R2Config(BaseModel):
    """Cloudflare R2 storage configuration."""

    account_id: str = Field(..., description="Cloudflare account ID")
    access_key_id: str = Field(..., description="R2 access key ID")
    secret_access_key: str = Field(..., description="R2 secret access key")
    bucket_name: str = Field(..., description="R2 bucket name for audio files")


class DatasetConfig(BaseModel):
    """Labels and targets for the curated dataset."""

    emotions: list[str] = Field(default_factory=lambda: list(DEFAULT_EMOTIONS))
    emotion_aliases: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_EMOTION_ALIASES))
    team_members: list[str] = Field(default_factory=list, description="Known uploaders")
    target_clips: int = Field(default=250, description="Clip count goal shown in statistics")
    max_upload_mb: int = Field(default=150)

    @field_validator("target_clips")
    @classmethod
    def validate_target(cls, v: int) -> int:
        """Validate the clip target is positive."""
        if v <= 0:
            raise ValueError(f"target_clips must be positive, got {v}")
        return v

    def normalize_emotion(self, value: str | None) -> str | None:
        """Map a label or alias to a configured emotion; None if unrecognised."""
        if not value:
            return None
        value = value.strip()
        if value in self.emotions:
            return value
        if value in self.emotion_aliases:
            return self.emotion_aliases[value]
        lowered = value.lower()
        for emotion in self.emotions:
            if emotion.lower() == lowered:
                return emotion
        return None


class Config(BaseModel):
    """Global configuration."""

    auth: AuthConfig | None = Field(
        default=None, description="Authentication configuration (optional)"
    )
    r2: R2Config | None = Field(
        default=None, description="Cloudflare R2 storage configuration (optional)"
    )
    dataset: DatasetConfig = Field(default_factory=DatasetConfig)
    media_root: str = Field(default="media", description="Root folder for local blob storage")
    signed_url_seconds: int = Field(default=3600, description="Lifetime of signed audio URLs")

    @model_validator(mode="after")
    def validate_storage_requires_r2(self) -> Config:
        """Validate that R2 config is present if R2 storage is selected."""
        if os.getenv("EMOSET_STORAGE", "local").lower() == "r2" and self.r2 is None:
            msg = (
                "EMOSET_STORAGE=r2 is set but R2 configuration is missing.\n"
                "Either:\n"
                "  1. Add 'r2:' section to config.yaml with R2 credentials, or\n"
                "  2. Unset EMOSET_STORAGE to use local storage"
            )
            raise ValueError(msg)

        return self

    @classmethod
    def _collect_required_env_vars(cls, data: Any, collected: set[str] | None = None) -> set[str]:
        """Recursively collect all ${VAR_NAME} references from config data.

        Args:
            data: YAML data structure (dict, list, str, etc.)
            collected: Set of variable names found so far

        Returns:
            Set of all environment variable names referenced in config
        """
        if collected is None:
            collected = set()

        if isinstance(data, dict):
            for v in data.values():
                cls._collect_required_env_vars(v, collected)
        elif isinstance(data, list):
            for item in data:
                cls._collect_required_env_vars(item, collected)
        elif isinstance(data, str):
            pattern = r"\$\{([^}]+)\}"
            collected.update(re.findall(pattern, data))

        return collected

    @classmethod
    def _substitute_env_vars(cls, data: Any) -> Any:
        """Recursively substitute ${VAR_NAME} with environment variables.

        Raises:
            ValueError: If referenced environment variable is not set
        """
        if isinstance(data, dict):
            return {k: cls._substitute_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars(item) for item in data]
        elif isinstance(data, str):
            pattern = r"\$\{([^}]+)\}"

            def replace_var(match: re.Match[str]) -> str:
                var_name = match.group(1)
                value = os.getenv(var_name)
                if value is None:
                    raise ValueError(
                        f"Environment variable '{var_name}' referenced in config but not set"
                    )
                return value

            return re.sub(pattern, replace_var, data)
        else:
            return data

    @classmethod
    def load(cls, config_path: str = "config.yaml") -> Config:
        """Load configuration from YAML file.

        Note: Assumes environment variables are already loaded (e.g., via load_dotenv()).
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, "r") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}

        # Only check env vars for sections that are present and not None
        required_vars: set[str] = set()
        for key in ["auth", "r2", "dataset", "media_root"]:
            if data.get(key) is not None:
                required_vars.update(cls._collect_required_env_vars(data[key]))

        missing_vars = [var for var in required_vars if var not in os.environ]

        if missing_vars:
            raise ValueError(
                f"Missing required environment variables: {', '.join(sorted(missing_vars))}\n"
                + "Please set these in your .env file or environment.\n"
                + "See .env.example for reference."
            )

        data = cls._substitute_env_vars(data)
        return cls(**data)


# Global config instance
_config: Config | None = None


def load_config(config_path: str | None = None) -> Config:
    """Load and cache the global configuration."""
    global _config
    _config = Config.load(config_path or os.getenv("EMOSET_CONFIG", "config.yaml"))
    return _config


def get_config() -> Config:
    """Get the cached configuration (loads if not already loaded)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Config | None) -> None:
    """Replace the cached configuration (used by tests and embedding code)."""
    global _config
    _config = config
