"""
HMAC-SHA256 webhook signature verification.

Signature = base64(HMAC-SHA256(shared_secret, raw_body)), as sent in the
X-Shopify-Hmac-Sha256 header.
"""
import base64
import hashlib
import hmac
import logging
from typing import Optional

from profit_core.application.interfaces import ISignatureVerifier


logger = logging.getLogger(__name__)


def compute_signature(secret: str, raw_body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(secret: str, raw_body: bytes, signature: Optional[str]) -> bool:
    """Constant-time comparison. A missing signature never verifies."""
    if not signature:
        return False
    expected = compute_signature(secret, raw_body)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("ascii", "ignore"))


class HmacSignatureVerifier(ISignatureVerifier):

    def __init__(self, shared_secret: Optional[str]):
        self.shared_secret = shared_secret
        if not shared_secret:
            logger.warning("No webhook secret configured; all signed deliveries will be rejected")

    def verify(self, raw_body: bytes, signature: Optional[str]) -> bool:
        if not self.shared_secret:
            return False
        return verify_signature(self.shared_secret, raw_body, signature)
