from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from pr_line_counter.github_client import GitHubInstallationClient
from pr_line_counter.models.review import InstallationCredential, ReviewFinding


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key) -> str:
    return rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


@pytest.fixture
def credential() -> InstallationCredential:
    now = datetime.now(timezone.utc)
    return InstallationCredential(
        assertion="app-jwt",
        assertion_expires_at=now + timedelta(minutes=10),
        token="ghs_test",
        expires_at=now + timedelta(hours=1),
    )


class FakeGitHub:
    """In-memory stand-in for the GitHub REST endpoints used by one pipeline run."""

    def __init__(self, files: List[Dict[str, Any]], *, head_sha: str = "abc1234def") -> None:
        self.files = files
        self.head_sha = head_sha
        self.requests: List[httpx.Request] = []
        self.review_comments: List[Dict[str, Any]] = []
        self.issue_comments: List[Dict[str, Any]] = []
        self.fail_summary_status: int | None = None
        self.fail_review_comment_status: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path.endswith("/files"):
            return httpx.Response(200, json=self.files)
        if request.method == "GET" and "/pulls/" in path:
            return httpx.Response(200, json={"head": {"sha": self.head_sha}})
        if request.method == "POST" and path.endswith("/comments") and "/pulls/" in path:
            if self.fail_review_comment_status:
                return httpx.Response(self.fail_review_comment_status, json={"message": "Validation Failed"})
            body = json.loads(request.content)
            self.review_comments.append(body)
            return httpx.Response(201, json={"id": len(self.review_comments), **body})
        if request.method == "POST" and path.endswith("/comments") and "/issues/" in path:
            if self.fail_summary_status:
                return httpx.Response(self.fail_summary_status, json={"message": "Server Error"})
            body = json.loads(request.content)
            self.issue_comments.append(body)
            return httpx.Response(201, json={"id": 9001, **body})
        return httpx.Response(404, json={"message": "Not Found"})

    def count(self, method: str, suffix: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path.endswith(suffix))

    def client_factory(self) -> Callable[[InstallationCredential], GitHubInstallationClient]:
        def factory(credential: InstallationCredential) -> GitHubInstallationClient:
            return GitHubInstallationClient(
                base_url="https://api.github.test",
                credential=credential,
                client=httpx.AsyncClient(
                    base_url="https://api.github.test", transport=httpx.MockTransport(self.handler)
                ),
            )

        return factory


class FakeReviewService:
    def __init__(self, findings: Dict[str, List[ReviewFinding]] | None = None) -> None:
        self.findings = findings or {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []

    async def review_file(self, filename: str, patch: str) -> List[ReviewFinding]:
        self.calls.append(filename)
        if filename in self.failures:
            raise self.failures[filename]
        return list(self.findings.get(filename, []))


class FakeAuth:
    def __init__(self, credential: InstallationCredential, error: Exception | None = None) -> None:
        self.credential = credential
        self.error = error
        self.minted: List[int] = []

    async def mint_installation_token(self, installation_id: int) -> InstallationCredential:
        self.minted.append(installation_id)
        if self.error is not None:
            raise self.error
        return self.credential


@pytest.fixture
def review_service() -> FakeReviewService:
    return FakeReviewService()


@pytest.fixture
def acme_event_payload() -> Dict[str, Any]:
    return {
        "action": "opened",
        "pull_request": {"number": 42, "head": {"sha": "abc1234def"}, "title": "Add widgets"},
        "installation": {"id": 7},
        "repository": {"owner": {"login": "acme"}, "name": "widgets"},
    }


@pytest.fixture
def acme_files() -> List[Dict[str, Any]]:
    return [
        {
            "filename": "a.js",
            "status": "modified",
            "additions": 10,
            "deletions": 2,
            "patch": "@@ -1,3 +1,11 @@\n-var x = 1;\n+let x = 1;",
        },
        {"filename": "img.png", "status": "modified", "additions": 0, "deletions": 0},
    ]
