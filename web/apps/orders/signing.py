"""HMAC signatures for gateway payment callbacks.

The gateway signs ``"<order_id>|<payment_id>"`` with the merchant key secret
using HMAC-SHA256 and hands the hex digest to the client after checkout. The
server recomputes it and compares the two; this is the only cryptographic
trust boundary of the service.
"""

import hashlib
import hmac


def signing_payload(order_id: str, payment_id: str) -> bytes:
    return f"{order_id}|{payment_id}".encode("utf-8")


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Return ``hex(HMAC-SHA256(secret, order_id + "|" + payment_id))``.

    Args:
        secret: Shared key secret of the gateway account.
        order_id: Gateway order id.
        payment_id: Gateway payment id.

    Returns:
        str: Lower-case hex digest.
    """
    return hmac.new(secret.encode("utf-8"), signing_payload(order_id, payment_id), hashlib.sha256).hexdigest()


def signature_matches(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    """Compare a client signature with the expected one in constant time."""
    expected = compute_signature(secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))
