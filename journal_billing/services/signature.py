import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def sign(raw_body: bytes, shared_secret: str) -> str:
    return hmac.new(shared_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify(raw_body: bytes, provided_signature: str, shared_secret: str) -> bool:
    """
    Check that `provided_signature` is the hex HMAC-SHA256 of `raw_body`.

    Must be given the body exactly as received, before any JSON parsing.
    Never raises: anything that goes wrong counts as "not verified".
    """
    try:
        expected = sign(raw_body, shared_secret)
        return hmac.compare_digest(expected, provided_signature)
    except Exception as e:
        logger.warning("[SIGNATURE] verification error: %r", e)
        return False
