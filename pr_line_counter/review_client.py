"""Client wrapper for the chat-completions review-suggestion service."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

import httpx

from pr_line_counter.config import DEFAULT_REVIEW_API_BASE_URL, DEFAULT_REVIEW_MODEL
from pr_line_counter.errors import MalformedResponseError, UpstreamError
from pr_line_counter.logger import get_logger, log_with_context
from pr_line_counter.models.review import DEFAULT_SEVERITY, SEVERITIES, ReviewFinding

logger = get_logger()

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_JSON = re.compile(r"(\{.*\})", re.DOTALL)


class ReviewServiceError(UpstreamError):
    """Raised when the review-suggestion API responds with an error."""


class ReviewSuggestionClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_REVIEW_API_BASE_URL,
        model: str = DEFAULT_REVIEW_MODEL,
        timeout: float = 60.0,
        temperature: float = 0.1,
        max_tokens: int = 1000,
        max_patch_chars: int = 12000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._max_patch_chars = max_patch_chars
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def review_file(self, filename: str, patch: str) -> List[ReviewFinding]:
        """Ask the model for findings on one file's patch.

        Raises ReviewServiceError when the call fails and MalformedResponseError
        when the reply cannot be read as ``{"comments": [...]}``.
        """

        ctx_logger = log_with_context(logger, filename=filename)
        prompt = build_review_prompt(filename, patch, max_patch_chars=self._max_patch_chars)
        ctx_logger.debug(f"Requesting review ({len(prompt)} prompt characters, model={self._model})")

        try:
            response = await self._client.post(
                "/chat/completions",
                json={
                    "model": self._model,
                    "messages": [{"role": "user", "content": prompt}],
                    "temperature": self._temperature,
                    "max_tokens": self._max_tokens,
                },
            )
        except httpx.HTTPError as exc:
            raise ReviewServiceError(f"Review request for {filename} failed: {exc}") from exc
        _raise_for_status("request review", response)

        content = _extract_message_content(response)
        findings = parse_findings(content)
        ctx_logger.debug(f"Review service returned {len(findings)} finding(s)")
        return findings


def _raise_for_status(action: str, response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    detail: Any | None
    try:
        detail = response.json()
    except ValueError:
        detail = response.text
    raise ReviewServiceError(
        f"Failed to {action}: status={response.status_code}, detail={detail}",
        response.status_code,
        detail,
    )


def _extract_message_content(response: httpx.Response) -> str:
    try:
        data = response.json()
        content = data["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise MalformedResponseError("Review service response had no message content.") from exc
    if not isinstance(content, str):
        raise MalformedResponseError("Review service message content was not text.")
    return content


def build_review_prompt(filename: str, patch: str, *, max_patch_chars: int = 12000) -> str:
    if len(patch) > max_patch_chars:
        patch = patch[:max_patch_chars] + "\n... (truncated)"

    return (
        "Review this code change and provide specific feedback. Focus on:\n"
        "- Potential bugs or issues\n"
        "- Code quality improvements\n"
        "- Security concerns\n"
        "- Performance issues\n"
        "- Best practices\n"
        "\n"
        f"File: {filename}\n"
        "Changes:\n"
        f"{patch}\n"
        "\n"
        "Respond in JSON format:\n"
        "{\n"
        "  \"comments\": [\n"
        "    {\n"
        "      \"line\": <line_number>,\n"
        "      \"message\": \"<specific feedback>\",\n"
        "      \"severity\": \"error|warning|suggestion\"\n"
        "    }\n"
        "  ]\n"
        "}\n"
        "\n"
        "Only include comments for lines that actually need improvement. "
        "If no issues found, return {\"comments\": []}."
    )


def _extract_json_fragment(text: str) -> str | None:
    text = text.strip()
    if not text:
        return None

    if match := _FENCED_JSON.search(text):
        return match.group(1)

    if text.startswith("{") and text.endswith("}"):
        return text

    if match := _BARE_JSON.search(text):
        return match.group(1)
    return None


def parse_findings(text: str) -> List[ReviewFinding]:
    """Turn the model's reply into findings, dropping entries that are unusable."""

    fragment = _extract_json_fragment(text)
    if fragment is None:
        raise MalformedResponseError("Review reply did not contain a JSON object.")
    try:
        data: Dict[str, Any] = json.loads(fragment)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Review reply was not valid JSON: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("comments"), list):
        raise MalformedResponseError("Review reply is missing a 'comments' list.")

    findings: List[ReviewFinding] = []
    for entry in data["comments"]:
        if not isinstance(entry, dict):
            continue
        try:
            line = int(entry.get("line"))
        except (TypeError, ValueError):
            continue
        message = entry.get("message")
        if line <= 0 or not isinstance(message, str) or not message.strip():
            continue

        severity = str(entry.get("severity") or "").strip().lower()
        if severity not in SEVERITIES:
            severity = DEFAULT_SEVERITY
        findings.append(ReviewFinding(line=line, message=message.strip(), severity=severity))
    return findings
