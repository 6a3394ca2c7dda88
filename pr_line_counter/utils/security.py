"""Security helpers for webhook validation."""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def _secret_bytes(secret: str | bytes) -> bytes:
    return secret if isinstance(secret, bytes) else secret.encode("utf-8")


def build_github_signature(secret: str | bytes, payload: bytes) -> str:
    """Return the GitHub-style HMAC signature for the given payload."""

    digest = hmac.new(_secret_bytes(secret), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_github_signature(secret: str | bytes, payload: bytes, raw_signature: str | None) -> bool:
    """Verify a GitHub webhook signature using a constant-time comparison.

    ``payload`` must be the raw request body. A missing header is compared
    against an empty value so the comparison always runs; malformed headers
    simply fail to match.
    """

    expected = build_github_signature(secret, payload).encode("ascii")
    try:
        provided = (raw_signature or "").encode("ascii")
    except UnicodeEncodeError:
        provided = b""
    matches = hmac.compare_digest(expected, provided)
    return matches and raw_signature is not None
