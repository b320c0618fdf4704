"""
Webhook authentication: HMAC-SHA256 signature with a shared-secret token fallback.
"""

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass
from typing import Literal

import structlog

logger = structlog.get_logger()

SIGNATURE_HEADERS = ("x-tavus-signature", "tavus-signature", "x-signature")
TOKEN_PARAMS = ("t", "token")

AuthMethod = Literal["signature", "token", "none"]


@dataclass(frozen=True)
class WebhookSecrets:
    hmac_secret: str | None = None
    token_secret: str | None = None


def extract_signature(header: str | None) -> str | None:
    """Pull the digest out of the header formats the provider has been seen to send."""
    if not header:
        return None
    trimmed = header.strip()

    if "," in trimmed:
        for part in trimmed.split(","):
            key, sep, value = part.strip().partition("=")
            if not sep or not value:
                continue
            if key.lower() in {"v1", "signature", "sha256"}:
                return value.strip()

    if trimmed.lower().startswith("sha256="):
        return trimmed[len("sha256="):]
    return trimmed


def _decode_digest(signature: str) -> bytes | None:
    try:
        return bytes.fromhex(signature)
    except ValueError:
        pass
    try:
        return base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError):
        return None


def verify_signature(raw_body: bytes, signature_header: str | None, secret: str | None) -> bool:
    if not secret or not signature_header:
        return False
    signature = extract_signature(signature_header)
    if not signature:
        return False
    provided = _decode_digest(signature)
    if provided is None:
        return False
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return hmac.compare_digest(expected, provided)


def verify_token(token_param: str | None, token_secret: str | None) -> bool:
    if not token_param or not token_secret:
        return False
    return hmac.compare_digest(
        token_param.strip().encode("utf-8"), token_secret.strip().encode("utf-8")
    )


def verify_with_method(
    raw_body: bytes,
    signature_header: str | None,
    token_param: str | None,
    secrets: WebhookSecrets,
) -> AuthMethod:
    if not secrets.hmac_secret and not secrets.token_secret:
        logger.warning("webhook_auth_not_configured")
        return "none"
    if verify_signature(raw_body, signature_header, secrets.hmac_secret):
        return "signature"
    if verify_token(token_param, secrets.token_secret):
        return "token"
    return "none"


def verify(
    raw_body: bytes,
    signature_header: str | None,
    token_param: str | None,
    secrets: WebhookSecrets,
) -> bool:
    return verify_with_method(raw_body, signature_header, token_param, secrets) != "none"


def sign(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``raw_body``, the form the provider puts in the header."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
