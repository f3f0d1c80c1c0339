"""Tests for webhook HMAC verification."""
import base64
import hashlib
import hmac

from profit_core.infrastructure.security import (
    HmacSignatureVerifier,
    compute_signature,
    verify_signature,
)


BODY = b'{"external_order_id": "1001"}'


class TestSignatures:

    def test_signature_is_base64_hmac_sha256(self):
        expected = base64.b64encode(hmac.new(b"secret", BODY, hashlib.sha256).digest()).decode()
        assert compute_signature("secret", BODY) == expected

    def test_verify_accepts_matching_signature(self):
        assert verify_signature("secret", BODY, compute_signature("secret", BODY))

    def test_verify_rejects_other_secret_or_body(self):
        assert not verify_signature("secret", BODY, compute_signature("other", BODY))
        assert not verify_signature("secret", BODY + b" ", compute_signature("secret", BODY))

    def test_missing_signature_never_verifies(self):
        assert not verify_signature("secret", BODY, None)
        assert not verify_signature("secret", BODY, "")


class TestHmacSignatureVerifier:

    def test_verifies_with_configured_secret(self):
        verifier = HmacSignatureVerifier("secret")
        assert verifier.verify(BODY, compute_signature("secret", BODY))

    def test_unconfigured_secret_rejects_everything(self):
        verifier = HmacSignatureVerifier(None)
        assert not verifier.verify(BODY, compute_signature("", BODY))
