"""GitHub webhook signature verification.

GitHub signs each delivery with an HMAC of the raw request body using the
webhook secret, and sends it as ``X-Hub-Signature-256: sha256=<hex>`` (or the
legacy ``X-Hub-Signature: sha1=<hex>``). Verification must run on the exact
bytes received; a body that was parsed and re-serialized will not match.

GitHub Webhook Signature Header:
    X-Hub-Signature-256: sha256=757107ea0eb2509fc211221cce984b8a37570b6d...
"""

import hashlib
import hmac
import logging
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


SUPPORTED_ALGORITHMS: Dict[str, Callable] = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}


def compute_signature(raw_body: bytes, secret: str, algorithm: str = "sha256") -> str:
    """Compute the signature header value GitHub would send for a body.

    Args:
        raw_body: The exact request body bytes.
        secret: The shared webhook secret.
        algorithm: Either "sha256" or "sha1".

    Returns:
        The header value in the form "<algorithm>=<hexdigest>".

    Raises:
        ValueError: If the algorithm is not supported.
    """
    hash_fn = SUPPORTED_ALGORITHMS.get(algorithm)
    if hash_fn is None:
        raise ValueError(f"Unsupported signature algorithm: {algorithm}")
    digest = hmac.new(secret.encode("utf-8"), raw_body, hash_fn).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(
    raw_body: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
) -> bool:
    """Verify a webhook signature header against the raw body.

    Never raises; every malformed or missing input yields False.

    Args:
        raw_body: The exact request body bytes as received.
        signature_header: Value of X-Hub-Signature-256 or X-Hub-Signature.
        secret: The shared webhook secret. Empty means not configured.

    Returns:
        True if the header matches the HMAC of the body, False otherwise.
    """
    if not signature_header:
        logger.warning("No webhook signature provided")
        return False

    if not raw_body:
        logger.warning("Empty webhook body, cannot verify signature")
        return False

    if not secret:
        logger.warning("Webhook secret is not configured")
        return False

    algorithm, separator, digest = signature_header.partition("=")
    if not separator or not algorithm or not digest:
        logger.warning("Malformed webhook signature header")
        return False

    if algorithm not in SUPPORTED_ALGORITHMS:
        logger.warning("Unsupported webhook signature algorithm: %s", algorithm)
        return False

    expected = compute_signature(raw_body, secret, algorithm).encode("ascii")
    try:
        supplied = signature_header.encode("ascii")
    except UnicodeEncodeError:
        logger.warning("Webhook signature header contains non-ASCII characters")
        return False

    if len(supplied) != len(expected):
        return False

    return hmac.compare_digest(supplied, expected)
