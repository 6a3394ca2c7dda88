"""Application configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, BaseModel, Field, ValidationError

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_GITHUB_API_BASE_URL = "https://api.github.com"
DEFAULT_REVIEW_API_BASE_URL = "https://api.openai.com/v1"
DEFAULT_REVIEW_MODEL = "gpt-3.5-turbo"


class SettingsError(RuntimeError):
    """Raised when application configuration is invalid or incomplete."""


@dataclass(frozen=True)
class AppCredentials:
    github_app_id: int
    github_private_key_pem: str
    github_webhook_secret: str
    review_api_key: str


class SummaryPolicy(BaseModel):
    """Net-change thresholds used when rendering the summary comment."""

    large_threshold: int = 100
    huge_threshold: int = 200


class Settings(BaseModel):
    """Runtime settings loaded from environment variables."""

    port: int = 3000
    github_api_base_url: AnyHttpUrl = DEFAULT_GITHUB_API_BASE_URL
    github_app_id: int | None = None
    github_private_key_pem: str | None = None
    github_webhook_secret: str | None = None
    review_api_key: str | None = None
    review_api_base_url: AnyHttpUrl = DEFAULT_REVIEW_API_BASE_URL
    review_model: str = DEFAULT_REVIEW_MODEL
    review_max_concurrency: int = Field(default=4, ge=1)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    review_timeout_seconds: float = Field(default=60.0, gt=0)
    summary_policy: SummaryPolicy = Field(default_factory=SummaryPolicy)

    @property
    def normalized_github_api_base_url(self) -> str:
        """Return the GitHub API base URL without a trailing slash."""
        return str(self.github_api_base_url).rstrip("/")

    @property
    def normalized_review_api_base_url(self) -> str:
        return str(self.review_api_base_url).rstrip("/")

    def require_credentials(self) -> AppCredentials:
        """Ensure every secret is configured and return them."""

        missing = []
        if self.github_app_id is None:
            missing.append("GITHUB_APP_ID")
        if not self.github_private_key_pem:
            missing.append("GITHUB_PRIVATE_KEY")
        if not self.github_webhook_secret:
            missing.append("GITHUB_WEBHOOK_SECRET")
        if not self.review_api_key:
            missing.append("OPENAI_API_KEY")

        if missing:
            missing_vars = ", ".join(missing)
            raise SettingsError(
                "PR processing is not configured. Missing environment variables: "
                f"{missing_vars}."
            )

        return AppCredentials(
            github_app_id=int(self.github_app_id),
            github_private_key_pem=self.github_private_key_pem,
            github_webhook_secret=self.github_webhook_secret,
            review_api_key=self.review_api_key,
        )


def _parse_int_env(name: str) -> int | None:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return None
    try:
        return int(raw_value)
    except ValueError as exc:
        raise SettingsError(f"Invalid value for {name}. It must be an integer.") from exc


def _parse_float_env(name: str) -> float | None:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return None
    try:
        return float(raw_value)
    except ValueError as exc:
        raise SettingsError(f"Invalid value for {name}. It must be a number.") from exc


def _build_settings() -> Settings:
    optional: dict = {}
    for field_name, env_name in (
        ("port", "PORT"),
        ("review_max_concurrency", "REVIEW_MAX_CONCURRENCY"),
    ):
        value = _parse_int_env(env_name)
        if value is not None:
            optional[field_name] = value

    for field_name, env_name in (
        ("request_timeout_seconds", "REQUEST_TIMEOUT_SECONDS"),
        ("review_timeout_seconds", "REVIEW_TIMEOUT_SECONDS"),
    ):
        value = _parse_float_env(env_name)
        if value is not None:
            optional[field_name] = value

    policy: dict = {}
    large_threshold = _parse_int_env("SUMMARY_LARGE_THRESHOLD")
    if large_threshold is not None:
        policy["large_threshold"] = large_threshold
    huge_threshold = _parse_int_env("SUMMARY_HUGE_THRESHOLD")
    if huge_threshold is not None:
        policy["huge_threshold"] = huge_threshold

    try:
        return Settings(
            github_api_base_url=os.getenv("GITHUB_API_BASE_URL") or DEFAULT_GITHUB_API_BASE_URL,
            github_app_id=_parse_int_env("GITHUB_APP_ID"),
            github_private_key_pem=os.getenv("GITHUB_PRIVATE_KEY"),
            github_webhook_secret=os.getenv("GITHUB_WEBHOOK_SECRET"),
            review_api_key=os.getenv("OPENAI_API_KEY"),
            review_api_base_url=os.getenv("REVIEW_API_BASE_URL") or DEFAULT_REVIEW_API_BASE_URL,
            review_model=os.getenv("REVIEW_MODEL") or DEFAULT_REVIEW_MODEL,
            summary_policy=SummaryPolicy(**policy),
            **optional,
        )
    except ValidationError as exc:
        raise SettingsError(f"Invalid application configuration: {exc}") from exc


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return _build_settings()


def get_settings() -> Settings:
    """Retrieve cached application settings."""
    return _cached_settings()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for tests)."""
    _cached_settings.cache_clear()
