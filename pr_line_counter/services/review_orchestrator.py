"""Fan-out of the automated review pass over a pull request's changed files."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Protocol, Sequence

from pr_line_counter.logger import get_logger, log_with_context
from pr_line_counter.models.review import ChangedFile, FileReview, ReviewFinding, SkipReason

logger = get_logger()

NON_REVIEWABLE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".bmp", ".webp")


class ReviewService(Protocol):
    async def review_file(self, filename: str, patch: str) -> List[ReviewFinding]: ...


class InlineCommentPublisher(Protocol):
    async def post_inline_comment(self, filename: str, finding: ReviewFinding) -> Dict[str, Any]: ...


def skip_reason_for(file: ChangedFile) -> SkipReason | None:
    """Return why a file is left out of the review pass, or None to review it."""

    if file.status == "removed":
        return SkipReason.REMOVED
    if not file.patch:
        # Binary and oversized diffs come without a patch and cannot be line-anchored.
        return SkipReason.NO_PATCH
    if file.filename.lower().endswith(NON_REVIEWABLE_EXTENSIONS):
        return SkipReason.NOT_REVIEWABLE
    return None


async def _review_one(
    file: ChangedFile,
    review_service: ReviewService,
    publisher: InlineCommentPublisher,
    *,
    review_timeout: float,
) -> FileReview:
    ctx_logger = log_with_context(logger, filename=file.filename)
    outcome = FileReview(filename=file.filename)

    ctx_logger.info(f"Reviewing file: {file.filename}")
    try:
        outcome.findings = list(
            await asyncio.wait_for(review_service.review_file(file.filename, file.patch), review_timeout)
        )
    except asyncio.TimeoutError:
        outcome.error = f"review timed out after {review_timeout:.0f}s"
        ctx_logger.warning(f"Review of {file.filename} timed out; treating as no findings")
        return outcome
    except Exception as exc:
        outcome.error = f"{type(exc).__name__}: {exc}"
        ctx_logger.error(f"Review of {file.filename} failed; treating as no findings: {exc}")
        return outcome

    for finding in outcome.findings:
        try:
            await publisher.post_inline_comment(file.filename, finding)
            outcome.posted += 1
        except Exception as exc:
            outcome.failed_posts += 1
            ctx_logger.error(f"Error posting inline comment on {file.filename}:{finding.line}: {exc}")

    return outcome


async def review_changed_files(
    files: Sequence[ChangedFile],
    review_service: ReviewService,
    publisher: InlineCommentPublisher,
    *,
    max_concurrency: int = 4,
    review_timeout: float = 60.0,
) -> List[FileReview]:
    """Review every eligible file and post its findings as inline comments.

    One file's failure never affects another's. Results are returned in the
    order of ``files``, skipped files included.
    """

    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _bounded(file: ChangedFile) -> FileReview:
        async with semaphore:
            return await _review_one(file, review_service, publisher, review_timeout=review_timeout)

    results: List[FileReview | None] = [None] * len(files)
    pending: List[asyncio.Future[FileReview]] = []
    pending_indexes: List[int] = []
    for index, file in enumerate(files):
        reason = skip_reason_for(file)
        if reason is not None:
            logger.debug(f"Skipping {file.filename}: {reason.value}")
            results[index] = FileReview(filename=file.filename, skip_reason=reason)
            continue
        pending.append(asyncio.ensure_future(_bounded(file)))
        pending_indexes.append(index)

    for index, outcome in zip(pending_indexes, await asyncio.gather(*pending)):
        results[index] = outcome

    reviewed = [result for result in results if result is not None]
    logger.info(
        f"Review pass finished: {len(pending)} reviewed, {len(files) - len(pending)} skipped, "
        f"{sum(r.posted for r in reviewed)} comment(s) posted"
    )
    return reviewed
