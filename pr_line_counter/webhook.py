"""GitHub webhook ingestion."""

from __future__ import annotations

import json
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from pr_line_counter.config import AppCredentials
from pr_line_counter.dependencies import credentials_dependency, pipeline_dependency
from pr_line_counter.errors import AuthError, PipelineError
from pr_line_counter.logger import get_logger, log_with_context, log_success, log_failure
from pr_line_counter.models.events import PullRequestEvent, PullRequestInfo, RepositoryInfo
from pr_line_counter.services.pipeline import PullRequestPipeline
from pr_line_counter.utils.security import verify_github_signature

router = APIRouter()

logger = get_logger()

_supported_pr_actions = {"opened", "synchronize"}


class IgnoreEventError(RuntimeError):
    """Raised when a webhook event should be acknowledged but not processed."""


def build_pull_request_event(payload: Dict[str, Any], delivery_id: str | None = None) -> PullRequestEvent:
    pull_request = payload.get("pull_request")
    if not isinstance(pull_request, dict) or not pull_request:
        raise IgnoreEventError("Payload has no pull request.")

    action = payload.get("action")
    if action not in _supported_pr_actions:
        raise IgnoreEventError(f"Pull request action '{action}' not actionable.")

    installation = payload.get("installation") or {}
    repository = payload.get("repository") or {}
    if not isinstance(installation, dict):
        raise ValueError("Pull request event installation must be an object.")
    if not isinstance(repository, dict):
        raise ValueError("Pull request event repository must be an object.")
    repo_owner = repository.get("owner") or {}
    owner = repo_owner.get("login") if isinstance(repo_owner, dict) else None

    if not installation.get("id"):
        raise ValueError("Pull request event missing installation id.")
    if not owner or not repository.get("name"):
        raise ValueError("Pull request event missing repository metadata.")
    if not pull_request.get("number"):
        raise ValueError("Pull request payload missing number.")

    return PullRequestEvent(
        action=action,
        installation_id=installation["id"],
        repository=RepositoryInfo(owner=owner, name=repository["name"]),
        pull_request=PullRequestInfo(number=pull_request["number"]),
        delivery_id=delivery_id,
    )


@router.post("/webhook", summary="Receive GitHub webhooks")
async def receive_webhook(
    request: Request,
    credentials: AppCredentials = Depends(credentials_dependency),
    pipeline: PullRequestPipeline = Depends(pipeline_dependency),
) -> Dict[str, Any]:
    """Verify the signature, filter to new or updated PRs, and run the pipeline."""

    start_time = time.time()
    delivery_id = request.headers.get("X-GitHub-Delivery")
    event_type = request.headers.get("X-GitHub-Event")
    ctx_logger = log_with_context(logger, delivery_id=delivery_id, event_type=event_type)
    ctx_logger.info("=== WEBHOOK RECEIVED ===")

    raw_body = await request.body()
    signature = request.headers.get("X-Hub-Signature-256")

    if not verify_github_signature(credentials.github_webhook_secret, raw_body, signature):
        log_failure(logger, "Webhook signature verification failed", delivery_id=delivery_id, event_type=event_type)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        log_failure(logger, "Invalid JSON payload", exc, delivery_id=delivery_id, event_type=event_type)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    try:
        event = build_pull_request_event(payload, delivery_id)
    except IgnoreEventError as exc:
        ctx_logger.debug(f"Webhook ignored: {exc}")
        return {"status": "ignored", "reason": str(exc)}
    except (ValueError, ValidationError) as exc:
        log_failure(logger, f"Invalid payload structure: {exc}", exc, delivery_id=delivery_id, event_type=event_type)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    repo_name = event.repository.full_name
    try:
        result = await pipeline(event)
    except PipelineError as exc:
        log_failure(logger, f"Error processing PR #{event.pull_request.number} at step {exc.step}",
                    exc.original_error or exc, delivery_id=delivery_id, repository=repo_name)
        if exc.is_auth_failure:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error processing PR"
        ) from exc
    except AuthError as exc:
        log_failure(logger, "Authentication failed while processing PR", exc,
                    delivery_id=delivery_id, repository=repo_name)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc
    except Exception as exc:
        log_failure(logger, "Unexpected error processing PR", exc, delivery_id=delivery_id, repository=repo_name)
        logger.exception("Full exception traceback:")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error processing PR"
        ) from exc

    log_success(
        logger,
        f"Processed PR #{result.pull_number} for {repo_name} in {time.time() - start_time:.3f}s",
        delivery_id=delivery_id,
        repository=repo_name,
    )
    return {
        "status": "processed",
        "pull_number": result.pull_number,
        "files_changed": result.stats.files_changed,
        "files_reviewed": result.files_reviewed,
        "comments_posted": result.comments_posted,
    }
