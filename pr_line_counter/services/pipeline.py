"""Runs the full review-and-summary pipeline for one pull request event."""

from __future__ import annotations

from typing import Callable

from pr_line_counter.config import SummaryPolicy
from pr_line_counter.errors import AuthError, PipelineError, UpstreamError
from pr_line_counter.github_client import GitHubAppAuth, GitHubInstallationClient
from pr_line_counter.logger import get_logger, log_with_context, log_timing, log_success, log_failure
from pr_line_counter.models.events import PullRequestEvent
from pr_line_counter.models.review import InstallationCredential, PipelineResult
from pr_line_counter.services.changed_files import fetch_changed_files
from pr_line_counter.services.comment_publisher import PullRequestCommentPublisher
from pr_line_counter.services.review_orchestrator import ReviewService, review_changed_files
from pr_line_counter.services.summary import render_summary, summarize

logger = get_logger()

InstallationClientFactory = Callable[[InstallationCredential], GitHubInstallationClient]


class PullRequestPipeline:
    """Mint a token, review the changed files, then post the line-count summary."""

    def __init__(
        self,
        *,
        auth: GitHubAppAuth,
        review_service: ReviewService,
        installation_client_factory: InstallationClientFactory,
        summary_policy: SummaryPolicy | None = None,
        max_concurrency: int = 4,
        review_timeout: float = 60.0,
    ) -> None:
        self._auth = auth
        self._review_service = review_service
        self._installation_client_factory = installation_client_factory
        self._summary_policy = summary_policy or SummaryPolicy()
        self._max_concurrency = max_concurrency
        self._review_timeout = review_timeout

    async def __call__(self, event: PullRequestEvent) -> PipelineResult:
        repo_name = event.repository.full_name
        pull_number = event.pull_request.number
        context = {"delivery_id": event.delivery_id, "repository": repo_name, "pull_number": pull_number}
        ctx_logger = log_with_context(logger, **context)
        ctx_logger.info(f"Processing PR #{pull_number}: {event.action}")

        try:
            with log_timing(ctx_logger, "mint_installation_token"):
                credential = await self._auth.mint_installation_token(event.installation_id)
        except AuthError as exc:
            log_failure(logger, "Could not mint installation token", exc, **context)
            raise PipelineError("Installation token exchange failed", "mint_installation_token", exc) from exc
        ctx_logger.debug(
            f"Installation token valid until {credential.expires_at.isoformat()}; "
            f"app assertion valid until {credential.assertion_expires_at.isoformat()}"
        )

        client = self._installation_client_factory(credential)
        try:
            try:
                with log_timing(ctx_logger, "fetch_changed_files"):
                    files = await fetch_changed_files(client, event)
            except (UpstreamError, AuthError) as exc:
                raise PipelineError("Failed to fetch changed files", "fetch_changed_files", exc) from exc

            publisher = PullRequestCommentPublisher(
                client,
                owner=event.repository.owner,
                repo=event.repository.name,
                pull_number=pull_number,
            )

            with log_timing(ctx_logger, "review_changed_files"):
                reviews = await review_changed_files(
                    files,
                    self._review_service,
                    publisher,
                    max_concurrency=self._max_concurrency,
                    review_timeout=self._review_timeout,
                )

            stats = summarize(files)
            ctx_logger.info(
                f"Line counts: +{stats.additions} -{stats.deletions} across {stats.files_changed} file(s)"
            )

            try:
                with log_timing(ctx_logger, "post_summary"):
                    comment = await publisher.post_summary(render_summary(stats, self._summary_policy))
            except (UpstreamError, AuthError) as exc:
                raise PipelineError("Failed to post summary comment", "post_summary", exc) from exc
        finally:
            await client.aclose()

        result = PipelineResult(
            pull_number=pull_number,
            stats=stats,
            reviews=reviews,
            summary_comment_id=(comment or {}).get("id"),
        )
        log_success(
            logger,
            f"Posted summary on PR #{pull_number} ({result.comments_posted} inline comment(s))",
            **context,
        )
        return result
