"""GitHub API client helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import httpx
import jwt

from pr_line_counter.errors import AuthError, UpstreamError
from pr_line_counter.models.review import InstallationCredential


class GitHubAPIError(UpstreamError):
    """Raised when a GitHub API request fails."""


DEFAULT_ACCEPT_HEADER = "application/vnd.github+json"
DEFAULT_API_VERSION = "2022-11-28"
DEFAULT_USER_AGENT = "PR-Line-Counter/1.0"

# GitHub rejects app assertions that live longer than ten minutes; iat is
# backdated to absorb clock drift between us and GitHub.
ASSERTION_BACKDATE = timedelta(seconds=60)
ASSERTION_LIFETIME = timedelta(minutes=10)

FILES_PER_PAGE = 100


def _base_headers(user_agent: str) -> Dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": DEFAULT_ACCEPT_HEADER,
        "X-GitHub-Api-Version": DEFAULT_API_VERSION,
    }


def _error_detail(response: httpx.Response) -> Any | None:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class GitHubAppAuth:
    """Turns the app's private key into short-lived installation credentials."""

    def __init__(
        self,
        *,
        base_url: str,
        app_id: int,
        private_key_pem: str,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._app_id = app_id
        # Normalize private key: handle escaped newlines from environment variables
        self._private_key = private_key_pem.replace("\\n", "\n")
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=_base_headers(user_agent),
        )
        self._owns_client = client is None

    def build_assertion(self, *, now: datetime | None = None) -> tuple[str, datetime]:
        """Return a signed RS256 app JWT and its expiry."""

        now = now or datetime.now(timezone.utc)
        expires_at = now + ASSERTION_LIFETIME
        payload = {
            "iat": int((now - ASSERTION_BACKDATE).timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": str(self._app_id),
        }
        try:
            token = jwt.encode(payload, self._private_key, algorithm="RS256")
        except Exception as exc:
            raise AuthError(
                f"Failed to encode JWT: {exc}. Check that GITHUB_PRIVATE_KEY is a valid RSA private key in PEM format."
            ) from exc
        return token, expires_at

    async def mint_installation_token(self, installation_id: int) -> InstallationCredential:
        """Exchange a fresh app assertion for an installation access token."""

        assertion, assertion_expires_at = self.build_assertion()
        url = f"/app/installations/{installation_id}/access_tokens"
        try:
            response = await self._client.post(url, headers={"Authorization": f"Bearer {assertion}"})
        except httpx.HTTPError as exc:
            raise AuthError(f"Installation token exchange failed: {exc}") from exc

        if response.status_code >= 400:
            raise AuthError(
                f"GitHub rejected the installation token exchange for installation {installation_id} "
                f"(status {response.status_code}): {_error_detail(response)}",
                response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise AuthError("GitHub returned invalid JSON for the installation token.", response.status_code) from exc

        token_value = data.get("token") if isinstance(data, dict) else None
        if not token_value:
            raise AuthError("GitHub did not return an installation token.", response.status_code)

        expires_at_raw = data.get("expires_at")
        if not expires_at_raw:
            raise AuthError(
                "GitHub did not return an expires_at value for installation token.",
                response.status_code,
            )

        try:
            expires_at = _parse_github_timestamp(expires_at_raw)
        except ValueError as exc:
            raise AuthError(
                f"GitHub returned an invalid expires_at value for installation token: {expires_at_raw!r}",
                response.status_code,
            ) from exc

        return InstallationCredential(
            assertion=assertion,
            assertion_expires_at=assertion_expires_at,
            token=token_value,
            expires_at=expires_at,
        )

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class GitHubInstallationClient:
    """Installation-scoped API operations for a single pipeline run."""

    def __init__(
        self,
        *,
        base_url: str,
        credential: InstallationCredential,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._credential = credential
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=_base_headers(user_agent),
        )
        self._owns_client = client is None

    def _headers(self) -> Dict[str, str]:
        if not self._credential.is_active():
            raise AuthError("Installation token has expired; mint a new one for this run.")
        return {
            "Authorization": f"Bearer {self._credential.token}",
            "Accept": DEFAULT_ACCEPT_HEADER,
            "X-GitHub-Api-Version": DEFAULT_API_VERSION,
        }

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, url, headers=self._headers(), params=params, json=json
            )
        except httpx.TimeoutException as exc:
            raise GitHubAPIError(f"GitHub API request to {url} timed out.", 0) from exc
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub API request to {url} failed: {exc}", 0) from exc

        if response.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API request to {url} failed with status {response.status_code}.",
                response.status_code,
                _error_detail(response),
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(
                f"GitHub API returned invalid JSON for {url}.", response.status_code, response.text
            ) from exc

    async def list_pull_request_files(
        self,
        *,
        owner: str,
        repo: str,
        pull_number: int,
    ) -> List[Dict[str, Any]]:
        url = f"/repos/{owner}/{repo}/pulls/{pull_number}/files"
        files: List[Dict[str, Any]] = []
        page = 1
        while True:
            response = await self._request("GET", url, params={"per_page": FILES_PER_PAGE, "page": page})
            batch = self._json(response, url)
            if not isinstance(batch, list):
                raise GitHubAPIError(
                    "Unexpected response while listing pull request files.",
                    response.status_code,
                    batch,
                )
            files.extend(batch)
            if len(batch) < FILES_PER_PAGE:
                break
            page += 1
        return files

    async def get_pull_request(self, *, owner: str, repo: str, pull_number: int) -> Dict[str, Any]:
        url = f"/repos/{owner}/{repo}/pulls/{pull_number}"
        response = await self._request("GET", url)
        return self._json(response, url)

    async def create_review_comment(
        self,
        *,
        owner: str,
        repo: str,
        pull_number: int,
        commit_id: str,
        path: str,
        position: int,
        body: str,
    ) -> Dict[str, Any]:
        url = f"/repos/{owner}/{repo}/pulls/{pull_number}/comments"
        response = await self._request(
            "POST",
            url,
            json={"body": body, "commit_id": commit_id, "path": path, "position": position},
        )
        return self._json(response, url)

    async def create_issue_comment(
        self,
        *,
        owner: str,
        repo: str,
        issue_number: int,
        body: str,
    ) -> Dict[str, Any]:
        url = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"
        response = await self._request("POST", url, json={"body": body})
        return self._json(response, url)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def _parse_github_timestamp(raw: str) -> datetime:
    if not isinstance(raw, str):
        raise ValueError(f"expected an ISO 8601 string, got {type(raw).__name__}")
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw).astimezone(timezone.utc)
