"""Webhook signature verification.

GitHub signs each delivery with an HMAC-SHA256 of the raw request body,
keyed by the webhook secret, and sends it as ``x-hub-signature-256:
sha256=<hex>``.
"""

import hashlib
import hmac

from deployhook.core.exceptions import SignatureError

SIGNATURE_HEADER = "x-hub-signature-256"
SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: bytes, body: bytes) -> str:
    """Return the ``sha256=<hex>`` signature for a body."""
    digest = hmac.new(secret, body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def check_signature(
    secret: bytes | str | None,
    body: bytes,
    provided: str | None,
) -> None:
    """Verify a webhook signature, raising SignatureError with the reason."""
    if not secret:
        raise SignatureError(SignatureError.MISSING_SECRET)
    if not provided:
        raise SignatureError(SignatureError.MISSING_SIGNATURE)

    if isinstance(secret, str):
        secret = secret.encode("utf-8")

    try:
        provided_bytes = provided.strip().encode("ascii")
    except UnicodeEncodeError:
        raise SignatureError(SignatureError.MALFORMED_SIGNATURE) from None
    if not provided_bytes.startswith(SIGNATURE_PREFIX.encode("ascii")):
        raise SignatureError(SignatureError.MALFORMED_SIGNATURE)

    expected = compute_signature(secret, body).encode("ascii")
    if not hmac.compare_digest(expected, provided_bytes):
        raise SignatureError(SignatureError.SIGNATURE_MISMATCH)


def verify(secret: bytes | str | None, body: bytes, provided: str | None) -> bool:
    """Return True when ``provided`` is a valid signature of ``body``."""
    try:
        check_signature(secret, body, provided)
    except SignatureError:
        return False
    return True
