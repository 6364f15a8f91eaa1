"""Unit tests for Slack request signature verification."""

import pytest

from runner_monitor.query.verify import compute_signature, verify_slack_signature


SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
BODY = b"command=%2Frunner-status-all&text="
NOW = 1_709_294_400.0


def signed(timestamp: str = "1709294400", body: bytes = BODY) -> tuple[str, str]:
    return timestamp, compute_signature(SECRET, timestamp, body)


class TestComputeSignature:
    """Tests for compute_signature."""

    def test_known_vector(self) -> None:
        """Test against the example from Slack's documentation."""
        body = (
            b"token=xyzz0WbapA4vBCDEFasx0q6G&team_id=T1DC2JH3J&team_domain=testteamnow"
            b"&channel_id=G8PSS9T3V&channel_name=foobar&user_id=U2CERLKJA"
            b"&user_name=roadrunner&command=%2Fwebhook-collect&text="
            b"&response_url=https%3A%2F%2Fhooks.slack.com%2Fcommands%2FT1DC2JH3J"
            b"%2F397700885554%2F96rGlfmibIGlgcZRskXaIFfN"
            b"&trigger_id=398738663015.47445629121.803a0bc887a14d10d2c447fce8b6703c"
        )

        signature = compute_signature(SECRET, "1531420618", body)

        assert signature == (
            "v0=a2114d57b48eac39b9ad189dd8316235a7b4a8d21a10bd27519666489c69b503"
        )


class TestVerifySlackSignature:
    """Tests for verify_slack_signature."""

    def test_valid(self) -> None:
        """Test a fresh, correctly signed request."""
        timestamp, signature = signed()

        assert verify_slack_signature(SECRET, timestamp, signature, BODY, NOW)

    def test_tampered_body(self) -> None:
        """Test a changed body fails."""
        timestamp, signature = signed()

        assert not verify_slack_signature(SECRET, timestamp, signature, BODY + b"x", NOW)

    def test_wrong_secret(self) -> None:
        """Test a signature made with another secret fails."""
        timestamp, signature = signed()

        assert not verify_slack_signature("other", timestamp, signature, BODY, NOW)

    @pytest.mark.parametrize("offset", [301, -301])
    def test_stale_or_future(self, offset: int) -> None:
        """Test requests more than five minutes away from now fail."""
        timestamp, signature = signed(str(int(NOW) + offset))

        assert not verify_slack_signature(SECRET, timestamp, signature, BODY, NOW)

    def test_within_window(self) -> None:
        """Test a request four minutes old passes."""
        timestamp, signature = signed(str(int(NOW) - 240))

        assert verify_slack_signature(SECRET, timestamp, signature, BODY, NOW)

    @pytest.mark.parametrize(
        ("secret", "timestamp", "signature"),
        [
            (None, "1709294400", "v0=abc"),
            (SECRET, None, "v0=abc"),
            (SECRET, "1709294400", None),
            (SECRET, "yesterday", "v0=abc"),
        ],
    )
    def test_missing_parts(
        self, secret: str | None, timestamp: str | None, signature: str | None
    ) -> None:
        """Test absent or malformed inputs fail closed."""
        assert not verify_slack_signature(secret, timestamp, signature, BODY, NOW)
