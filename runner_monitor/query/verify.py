"""Slack request signature verification.

See https://api.slack.com/authentication/verifying-requests-from-slack
"""

import hashlib
import hmac

import structlog


logger = structlog.get_logger()

SIGNATURE_VERSION = "v0"
MAX_REQUEST_AGE_SECONDS = 300


def compute_signature(signing_secret: str, timestamp: str, body: bytes) -> str:
    """Compute the ``v0=`` signature Slack sends for a request body."""
    basestring = f"{SIGNATURE_VERSION}:{timestamp}:".encode() + body
    digest = hmac.new(signing_secret.encode(), basestring, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    signing_secret: str | None,
    timestamp: str | None,
    signature: str | None,
    body: bytes,
    now: float,
) -> bool:
    """Check that a request was signed by Slack and is recent.

    Args:
        signing_secret: The app's signing secret.
        timestamp: ``X-Slack-Request-Timestamp`` header.
        signature: ``X-Slack-Signature`` header.
        body: Raw request body.
        now: Current Unix time in seconds.

    Returns:
        True if the signature matches and the timestamp is within five
        minutes of ``now``.
    """
    log = logger.bind(component="slack")

    if not signing_secret:
        log.error("signing_secret_missing")
        return False

    if not timestamp or not signature:
        log.warning("slack_headers_missing")
        return False

    try:
        request_time = int(timestamp)
    except ValueError:
        log.warning("slack_timestamp_invalid", timestamp=timestamp)
        return False

    if abs(now - request_time) > MAX_REQUEST_AGE_SECONDS:
        log.warning("slack_request_stale", age_seconds=round(now - request_time))
        return False

    expected = compute_signature(signing_secret, timestamp, body)
    if not hmac.compare_digest(signature.encode(), expected.encode()):
        log.warning("slack_signature_mismatch")
        return False

    return True
