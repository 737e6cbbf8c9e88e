"""
HMAC verification for PortPro webhook deliveries.

PortPro signs the raw request body with the shared secret and sends the
digest in the `X-Hub-Signature` header as `sha1=<hex>`.
"""
import hashlib
import hmac
import logging
from typing import Optional, Union

from portpro.services.errors import SignatureInvalid

logger = logging.getLogger(__name__)

SIGNATURE_ALGORITHM = 'sha1'
SIGNATURE_HEADER = 'X-Hub-Signature'


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode('utf-8')


def compute_signature(raw_body: Union[str, bytes], secret: str) -> str:
    """Return the header value PortPro would send for `raw_body`."""
    digest = hmac.new(_to_bytes(secret), _to_bytes(raw_body), hashlib.sha1).hexdigest()
    return f"{SIGNATURE_ALGORITHM}={digest}"


def verify_signature(
    signature_header: Optional[str],
    raw_body: Union[str, bytes],
    secret: Optional[str]
) -> bool:
    """
    Check a webhook signature header against the raw body.

    Args:
        signature_header: Value of the signature header (`sha1=<hex>`)
        raw_body: Request body exactly as received
        secret: Shared webhook secret

    Returns:
        True only when the header is well formed, uses sha1 and the digest
        matches. Every failure mode returns False.
    """
    if not signature_header or not secret:
        return False

    algorithm, sep, received = signature_header.partition('=')
    if not sep or algorithm.strip().lower() != SIGNATURE_ALGORITHM:
        logger.debug(f"Rejected signature with algorithm '{algorithm}'")
        return False

    received = received.strip()
    try:
        received_bytes = bytes.fromhex(received)
    except ValueError:
        logger.debug("Rejected signature with malformed hex digest")
        return False

    expected = hmac.new(_to_bytes(secret), _to_bytes(raw_body), hashlib.sha1).digest()
    return hmac.compare_digest(expected, received_bytes)


def require_valid_signature(
    signature_header: Optional[str],
    raw_body: Union[str, bytes],
    secret: Optional[str]
) -> None:
    """
    Raises:
        SignatureInvalid: If `verify_signature` rejects the header
    """
    if not signature_header:
        raise SignatureInvalid(f"Missing {SIGNATURE_HEADER} header")
    if not verify_signature(signature_header, raw_body, secret):
        raise SignatureInvalid(f"Invalid {SIGNATURE_HEADER} signature")
