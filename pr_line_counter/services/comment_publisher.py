"""Posts inline review comments and the summary comment for one pull request."""

from __future__ import annotations

import asyncio
from typing import Any, Dict

from pr_line_counter.github_client import GitHubAPIError, GitHubInstallationClient
from pr_line_counter.logger import get_logger, log_with_context
from pr_line_counter.models.review import ReviewFinding

logger = get_logger()


def format_finding_body(finding: ReviewFinding) -> str:
    return f"[{finding.severity.upper()}] {finding.message}"


class PullRequestCommentPublisher:
    def __init__(
        self,
        client: GitHubInstallationClient,
        *,
        owner: str,
        repo: str,
        pull_number: int,
    ) -> None:
        self._client = client
        self._owner = owner
        self._repo = repo
        self._pull_number = pull_number
        self._head_commit_id: str | None = None
        self._head_lock = asyncio.Lock()
        self._logger = log_with_context(logger, repository=f"{owner}/{repo}", pull_number=pull_number)

    async def head_commit_id(self) -> str:
        """Resolve the PR's current head commit once and reuse it for every comment."""

        async with self._head_lock:
            if self._head_commit_id is None:
                data = await self._client.get_pull_request(
                    owner=self._owner, repo=self._repo, pull_number=self._pull_number
                )
                sha = ((data or {}).get("head") or {}).get("sha")
                if not sha:
                    raise GitHubAPIError("Pull request response did not include a head commit.", 0, data)
                self._head_commit_id = sha
                self._logger.debug(f"Resolved head commit {sha[:8]}")
            return self._head_commit_id

    async def post_inline_comment(self, filename: str, finding: ReviewFinding) -> Dict[str, Any]:
        commit_id = await self.head_commit_id()
        comment = await self._client.create_review_comment(
            owner=self._owner,
            repo=self._repo,
            pull_number=self._pull_number,
            commit_id=commit_id,
            path=filename,
            position=finding.line,
            body=format_finding_body(finding),
        )
        self._logger.info(f"Posted inline comment on {filename}:{finding.line}")
        return comment

    async def post_summary(self, body: str) -> Dict[str, Any]:
        comment = await self._client.create_issue_comment(
            owner=self._owner,
            repo=self._repo,
            issue_number=self._pull_number,
            body=body,
        )
        self._logger.info(f"Posted summary comment on PR #{self._pull_number}")
        return comment
