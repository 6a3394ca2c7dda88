"""Line-count statistics and the summary comment posted on each pull request."""

from __future__ import annotations

from typing import Iterable

from pr_line_counter.config import SummaryPolicy
from pr_line_counter.models.review import ChangedFile, SummaryStats

REMOVED_STATUS = "removed"

LARGE_MARKER = "🚀"
SHRINKING_MARKER = "🔥"
NEUTRAL_MARKER = "📊"

LARGE_PR_WARNING = "⚠️ This is a large PR. Consider breaking it into smaller changes."
GOOD_SIZE_NOTE = "✅ Good PR size!"


def summarize(files: Iterable[ChangedFile]) -> SummaryStats:
    """Reduce the changed files to line totals. Removed files are not counted."""

    additions = 0
    deletions = 0
    files_changed = 0
    for file in files:
        if file.status == REMOVED_STATUS:
            continue
        additions += file.additions
        deletions += file.deletions
        files_changed += 1

    return SummaryStats(
        additions=additions,
        deletions=deletions,
        files_changed=files_changed,
        net_change=additions - deletions,
    )


def tier_marker(net_change: int, policy: SummaryPolicy | None = None) -> str:
    policy = policy or SummaryPolicy()
    if net_change > policy.large_threshold:
        return LARGE_MARKER
    if net_change < 0:
        return SHRINKING_MARKER
    return NEUTRAL_MARKER


def render_summary(stats: SummaryStats, policy: SummaryPolicy | None = None) -> str:
    policy = policy or SummaryPolicy()
    sign = "+" if stats.net_change > 0 else ""
    advisory = LARGE_PR_WARNING if stats.net_change > policy.huge_threshold else GOOD_SIZE_NOTE

    lines = [
        f"{tier_marker(stats.net_change, policy)} **PR Line Count Summary**",
        "",
        f"📈 **Added:** {stats.additions} lines",
        f"📉 **Deleted:** {stats.deletions} lines",
        f"📁 **Files changed:** {stats.files_changed}",
        f"📝 **Net change:** {sign}{stats.net_change} lines",
        "",
        advisory,
    ]
    return "\n".join(lines)
