"""FastAPI dependency factories."""

from __future__ import annotations

from typing import AsyncIterator

from fastapi import Depends, HTTPException

from pr_line_counter.config import AppCredentials, Settings, SettingsError, get_settings
from pr_line_counter.github_client import GitHubAppAuth, GitHubInstallationClient
from pr_line_counter.logger import get_logger
from pr_line_counter.models.review import InstallationCredential
from pr_line_counter.review_client import ReviewSuggestionClient
from pr_line_counter.services.pipeline import PullRequestPipeline

logger = get_logger()


def settings_dependency() -> Settings:
    """Resolve application settings, surfacing configuration errors via HTTPException."""

    try:
        return get_settings()
    except SettingsError as exc:
        logger.error(f"Failed to load settings: {exc}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def credentials_dependency(settings: Settings = Depends(settings_dependency)) -> AppCredentials:
    try:
        return settings.require_credentials()
    except SettingsError as exc:
        logger.error(f"Configuration incomplete: {exc}")
        raise HTTPException(status_code=500, detail=f"Configuration error: {exc}") from exc


async def pipeline_dependency(
    settings: Settings = Depends(settings_dependency),
    credentials: AppCredentials = Depends(credentials_dependency),
) -> AsyncIterator[PullRequestPipeline]:
    """Build the pipeline and its service clients for one request, closing them afterwards."""

    auth = GitHubAppAuth(
        base_url=settings.normalized_github_api_base_url,
        app_id=credentials.github_app_id,
        private_key_pem=credentials.github_private_key_pem,
        timeout=settings.request_timeout_seconds,
    )
    review_service = ReviewSuggestionClient(
        credentials.review_api_key,
        base_url=settings.normalized_review_api_base_url,
        model=settings.review_model,
        timeout=settings.review_timeout_seconds,
    )

    def installation_client_factory(credential: InstallationCredential) -> GitHubInstallationClient:
        return GitHubInstallationClient(
            base_url=settings.normalized_github_api_base_url,
            credential=credential,
            timeout=settings.request_timeout_seconds,
        )

    try:
        yield PullRequestPipeline(
            auth=auth,
            review_service=review_service,
            installation_client_factory=installation_client_factory,
            summary_policy=settings.summary_policy,
            max_concurrency=settings.review_max_concurrency,
            review_timeout=settings.review_timeout_seconds,
        )
    finally:
        await review_service.aclose()
        await auth.aclose()
