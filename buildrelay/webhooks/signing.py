"""Outbound payload signatures."""

from __future__ import annotations

import hashlib
import hmac


def sign_payload(body: bytes, secret: str, algorithm: str = "sha1") -> str | None:
    """Return ``<algorithm>=<hex digest>`` of ``body`` keyed by ``secret``.

    Returns None when no secret is configured: unsigned delivery is the
    expected behavior for webhooks registered without one. Raises ValueError
    if ``algorithm`` is not available in hashlib.
    """
    if not secret:
        return None
    algorithm = algorithm.lower()
    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported signature algorithm: {algorithm}")
    digest = hmac.new(secret.encode(), body, algorithm).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check a signature produced by :func:`sign_payload`.

    Not called by the relay itself: it is the receiving side of the
    signature, exported for webhook receivers written in Python and used by
    the dispatch tests.
    """
    if not secret or not signature or "=" not in signature:
        return False
    algorithm = signature.split("=", 1)[0]
    try:
        expected = sign_payload(body, secret, algorithm)
    except ValueError:
        return False
    return expected is not None and hmac.compare_digest(expected, signature)
