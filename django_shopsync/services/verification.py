"""
HMAC verification of inbound webhook bodies.

The signature header carries a base64 HMAC-SHA256 digest of the exact raw
request body, so verification must run before the body is decoded or parsed.
"""
import base64
import hashlib
import hmac


def compute_signature(secret: str, raw_body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """
    Check ``signature`` against the body using a constant-time comparison.

    Args:
        raw_body: Request body bytes, unmodified
        signature: Value of the signature header
        secret: Shared secret for the shop

    Returns:
        True only when both signature and secret are present and match
    """
    if not signature or not secret:
        return False

    expected = compute_signature(secret, raw_body)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("utf-8"))
