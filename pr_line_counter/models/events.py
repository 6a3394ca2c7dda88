"""Data models for inbound pull request webhook events."""

from __future__ import annotations

from pydantic import BaseModel


class RepositoryInfo(BaseModel):
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class PullRequestInfo(BaseModel):
    number: int


class PullRequestEvent(BaseModel):
    action: str
    installation_id: int
    repository: RepositoryInfo
    pull_request: PullRequestInfo
    delivery_id: str | None = None
