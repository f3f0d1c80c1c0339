from .hmac_verifier import HmacSignatureVerifier, compute_signature, verify_signature

__all__ = ["HmacSignatureVerifier", "compute_signature", "verify_signature"]
