"""Shared data structures for pull request processing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List

SEVERITIES = ("error", "warning", "suggestion")
DEFAULT_SEVERITY = "suggestion"


@dataclass(frozen=True, slots=True)
class ChangedFile:
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    patch: str | None = None


@dataclass(frozen=True, slots=True)
class ReviewFinding:
    line: int
    message: str
    severity: str = DEFAULT_SEVERITY


@dataclass(frozen=True, slots=True)
class SummaryStats:
    additions: int
    deletions: int
    files_changed: int
    net_change: int


@dataclass(frozen=True, slots=True)
class InstallationCredential:
    """Signed app assertion plus the installation token it was exchanged for."""

    assertion: str
    assertion_expires_at: datetime
    token: str
    expires_at: datetime

    def is_active(self, *, skew_seconds: int = 0) -> bool:
        """Return True if the token is still valid accounting for clock skew."""

        return self.expires_at - timedelta(seconds=skew_seconds) > datetime.now(timezone.utc)


class SkipReason(str, Enum):
    REMOVED = "removed"
    NO_PATCH = "no_patch"
    NOT_REVIEWABLE = "not_reviewable"


@dataclass(slots=True)
class FileReview:
    """Outcome of the review pass for one changed file."""

    filename: str
    skip_reason: SkipReason | None = None
    findings: List[ReviewFinding] = field(default_factory=list)
    error: str | None = None
    posted: int = 0
    failed_posts: int = 0

    @property
    def reviewed(self) -> bool:
        return self.skip_reason is None


@dataclass(slots=True)
class PipelineResult:
    pull_number: int
    stats: SummaryStats
    reviews: List[FileReview] = field(default_factory=list)
    summary_comment_id: int | None = None

    @property
    def comments_posted(self) -> int:
        return sum(review.posted for review in self.reviews)

    @property
    def files_reviewed(self) -> int:
        return sum(1 for review in self.reviews if review.reviewed)
