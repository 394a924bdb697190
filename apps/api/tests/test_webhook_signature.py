"""Tests for webhook signing primitives."""

import base64
import hashlib
import hmac

import pytest

from stampduty_sdk import InvalidSecretError, generate_secret, sign_webhook
from stampduty_sdk.webhook import (
    SECRET_PREFIX,
    build_headers,
    build_signed_content,
    compute_signature,
    decode_secret,
)

FIXTURE_SECRET = "whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"
FIXTURE_ID = "msg_p5jXN8AQM9LWM0D4loKWxJek"
FIXTURE_TIMESTAMP = "1614265330"
FIXTURE_BODY = b'{"test": 2432232314}'
FIXTURE_SIGNATURE = "v1,g0hM9SsE+OTPJTGt/tmIKtSyZlE3uFJELVlNIOLJ1OE="


class TestSignedContent:
    """Canonical signed content."""

    def test_joins_id_timestamp_and_body_with_dots(self):
        content = build_signed_content("msg_1", "1700000000", b'{"a": 1}')
        assert content == b'msg_1.1700000000.{"a": 1}'

    def test_body_is_not_normalized(self):
        body = b'  {"a" :  1}\n'
        content = build_signed_content("msg_1", 1700000000, body)
        assert content.endswith(body)

    def test_str_body_is_utf8_encoded(self):
        content = build_signed_content("msg_1", 1, '{"name": "₹ stamp"}')
        assert content == 'msg_1.1.{"name": "₹ stamp"}'.encode("utf-8")


class TestSignature:
    """HMAC-SHA256 signature computation."""

    def test_reference_fixture(self):
        signature = sign_webhook(FIXTURE_SECRET, FIXTURE_ID, FIXTURE_TIMESTAMP, FIXTURE_BODY)
        assert signature == FIXTURE_SIGNATURE

    def test_matches_manual_hmac(self):
        key = base64.b64decode("MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw")
        message = f"{FIXTURE_ID}.{FIXTURE_TIMESTAMP}.".encode() + FIXTURE_BODY
        digest = hmac.new(key, message, hashlib.sha256).digest()
        expected = "v1," + base64.b64encode(digest).decode()
        assert compute_signature(key, FIXTURE_ID, FIXTURE_TIMESTAMP, FIXTURE_BODY) == expected

    def test_deterministic(self):
        first = sign_webhook(FIXTURE_SECRET, "msg_1", 1700000000, b"{}")
        second = sign_webhook(FIXTURE_SECRET, "msg_1", 1700000000, b"{}")
        assert first == second

    def test_changes_with_timestamp_and_id(self):
        base = sign_webhook(FIXTURE_SECRET, "msg_1", 1700000000, b"{}")
        assert sign_webhook(FIXTURE_SECRET, "msg_1", 1700000001, b"{}") != base
        assert sign_webhook(FIXTURE_SECRET, "msg_2", 1700000000, b"{}") != base

    def test_build_headers(self):
        headers = build_headers(FIXTURE_SECRET, FIXTURE_ID, int(FIXTURE_TIMESTAMP), FIXTURE_BODY)
        assert headers == {
            "webhook-id": FIXTURE_ID,
            "webhook-timestamp": FIXTURE_TIMESTAMP,
            "webhook-signature": FIXTURE_SIGNATURE,
        }


class TestSecrets:
    """Secret decoding and generation."""

    def test_prefix_is_not_key_material(self):
        assert decode_secret(FIXTURE_SECRET) == base64.b64decode("MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw")

    def test_bare_base64_accepted(self):
        assert decode_secret("MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw") == decode_secret(FIXTURE_SECRET)

    @pytest.mark.parametrize("secret", ["", "whsec_", "whsec_not base64!", "whsec_abc"])
    def test_invalid_secret_rejected(self, secret):
        with pytest.raises(InvalidSecretError):
            decode_secret(secret)

    def test_invalid_secret_is_value_error(self):
        with pytest.raises(ValueError):
            sign_webhook("whsec_%%%", "msg_1", 1, b"{}")

    def test_generate_secret(self):
        secret = generate_secret()
        assert secret.startswith(SECRET_PREFIX)
        assert len(decode_secret(secret)) == 24

    def test_regenerated_secrets_differ(self):
        assert generate_secret() != generate_secret()
