"""Helpers to fetch the changed-file list of a pull request."""

from __future__ import annotations

from typing import Any, Dict, List

from pr_line_counter.github_client import GitHubAPIError, GitHubInstallationClient
from pr_line_counter.logger import get_logger, log_with_context, log_timing
from pr_line_counter.models.events import PullRequestEvent
from pr_line_counter.models.review import ChangedFile

logger = get_logger()


def _as_count(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def parse_changed_files(files: List[Dict[str, Any]]) -> List[ChangedFile]:
    parsed: List[ChangedFile] = []
    skipped_count = 0
    for file in files:
        filename = file.get("filename") if isinstance(file, dict) else None
        if not filename:
            logger.warning(f"Skipping file entry missing filename: {file}")
            skipped_count += 1
            continue
        parsed.append(
            ChangedFile(
                filename=filename,
                status=file.get("status") or "",
                additions=_as_count(file.get("additions")),
                deletions=_as_count(file.get("deletions")),
                patch=file.get("patch") or None,
            )
        )
    if skipped_count > 0:
        logger.warning(f"Skipped {skipped_count} file(s) due to missing filename")
    logger.debug(f"Parsed {len(parsed)} changed file(s) from {len(files)} entries")
    return parsed


async def fetch_changed_files(
    client: GitHubInstallationClient, event: PullRequestEvent
) -> List[ChangedFile]:
    ctx_logger = log_with_context(
        logger,
        delivery_id=event.delivery_id,
        repository=event.repository.full_name,
        pull_number=event.pull_request.number,
    )

    try:
        with log_timing(ctx_logger, "fetch_pr_files"):
            files = await client.list_pull_request_files(
                owner=event.repository.owner,
                repo=event.repository.name,
                pull_number=event.pull_request.number,
            )
    except GitHubAPIError as exc:
        if exc.status_code == 404:
            ctx_logger.error(f"PR or repository not found (404): {exc}")
        elif exc.status_code == 403:
            ctx_logger.error(f"Permission denied (403): {exc}")
        elif exc.status_code == 429:
            ctx_logger.error(f"Rate limit exceeded (429): {exc}")
        else:
            ctx_logger.error(f"GitHub API error ({exc.status_code}): {exc}")
        raise

    changed = parse_changed_files(files)
    if not changed:
        ctx_logger.warning(f"No files changed in PR #{event.pull_request.number}")
    return changed
