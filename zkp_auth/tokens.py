# zkp_auth/tokens.py
#
# -----------------------------------------------------------------------------
# Architectural notes
# -----------------------------------------------------------------------------
# Session tokens handed out after a successful ZKP login.
#
# What this module is:
#   - A tiny Ed25519-based signing/verification utility
#   - Similar in spirit to JWT, with a single fixed algorithm and claim set
#
# What this module is NOT:
#   - Not an identity system (wallet identity is proven by the ZKP)
#   - Not stateful (no revocation list)
#
# Token wire format:
#
#     v1.<payload_b64url>.<signature_b64url>
#
# Where:
#   - payload is canonical JSON (sorted keys, no whitespace)
#   - signature = Ed25519.sign(payload_bytes)
# -----------------------------------------------------------------------------

import base64
import json
import logging
import secrets
import time
from typing import Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

logger = logging.getLogger(__name__)

TOKEN_VERSION = "v1"
TOKEN_TYPE = "session"


class TokenError(Exception):
    """Token is malformed, forged or of the wrong type."""


class TokenExpired(TokenError):
    pass


# -----------------------------------------------------------------------------
# Base64 helpers
# -----------------------------------------------------------------------------
def b64url_encode(b: bytes) -> str:
    """URL-safe Base64 WITHOUT padding (tokens travel in headers/URLs)."""
    return base64.urlsafe_b64encode(b).decode("ascii").rstrip("=")


def b64url_decode(s: str) -> bytes:
    """
    Decode URL-safe Base64 with optional missing padding.

    Padding is restored automatically to allow lenient decoding.
    """
    s = str(s).strip()
    s += "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s.encode("ascii"))


# -----------------------------------------------------------------------------
# Key loading
# -----------------------------------------------------------------------------
def load_ed25519_private_key_from_b64(sk_b64: str) -> Ed25519PrivateKey:
    """
    Load a raw Ed25519 private key from Base64.

    The key MUST be exactly 32 bytes (raw Ed25519 seed); no PEM, no headers.
    This key represents *server authority*, not user identity.
    """
    raw = base64.b64decode(sk_b64.strip(), validate=True)
    if len(raw) != 32:
        raise ValueError("Ed25519 raw private key must be 32 bytes (base64 of 32 bytes)")
    return Ed25519PrivateKey.from_private_bytes(raw)


def load_or_generate_key(sk_b64: str) -> Ed25519PrivateKey:
    if sk_b64 and sk_b64.strip():
        return load_ed25519_private_key_from_b64(sk_b64)
    logger.warning(
        "[TOKENS] SESSION_SIGNING_KEY_B64 not set; using an ephemeral key "
        "(sessions will not survive a restart)"
    )
    return Ed25519PrivateKey.generate()


# -----------------------------------------------------------------------------
# Wire format
# -----------------------------------------------------------------------------
def encode_token(payload_bytes: bytes, sig: bytes) -> str:
    return f"{TOKEN_VERSION}." + b64url_encode(payload_bytes) + "." + b64url_encode(sig)


def decode_token(token: str) -> Tuple[bytes, bytes]:
    """
    Parse a token into payload bytes and signature.

    This performs *format validation only*.
    Cryptographic verification happens separately.
    """
    parts = str(token).strip().split(".")
    if len(parts) != 3 or parts[0] != TOKEN_VERSION:
        raise TokenError("bad token format")

    try:
        return b64url_decode(parts[1]), b64url_decode(parts[2])
    except ValueError:
        raise TokenError("bad token encoding")


def sign_token(sk: Ed25519PrivateKey, payload_obj: dict) -> str:
    # sorted keys + no whitespace: signature depends on identical bytes
    payload_bytes = json.dumps(payload_obj, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return encode_token(payload_bytes, sk.sign(payload_bytes))


def verify_token(pk: Ed25519PublicKey, token: str) -> dict:
    """
    Verify signature and return the decoded payload.

    Does NOT enforce claims (typ, expiry); see TokenIssuer.validate().
    """
    payload_bytes, sig = decode_token(token)
    try:
        pk.verify(sig, payload_bytes)
    except InvalidSignature:
        raise TokenError("bad token signature")
    try:
        obj = json.loads(payload_bytes.decode("utf-8"))
    except ValueError:
        raise TokenError("bad token payload")
    if not isinstance(obj, dict):
        raise TokenError("bad token payload")
    return obj


# -----------------------------------------------------------------------------
# Issuer
# -----------------------------------------------------------------------------
class TokenIssuer:
    def __init__(self, private_key: Ed25519PrivateKey, ttl_seconds: int = 900):
        self.private_key = private_key
        self.public_key = private_key.public_key()
        self.ttl_seconds = int(ttl_seconds)

    def issue(self, account_id: str, now: Optional[int] = None) -> str:
        iat = int(now if now is not None else time.time())
        return sign_token(self.private_key, {
            "v": 1,
            "typ": TOKEN_TYPE,
            "sub": str(account_id),
            "jti": secrets.token_urlsafe(12),
            "issued_at": iat,
            "expires_at": iat + self.ttl_seconds,
        })

    def validate(self, token: str, now: Optional[int] = None) -> dict:
        claims = verify_token(self.public_key, token)

        if claims.get("v") != 1 or claims.get("typ") != TOKEN_TYPE or not claims.get("sub"):
            raise TokenError("invalid token claims")

        try:
            exp = int(claims["expires_at"])
        except (KeyError, TypeError, ValueError):
            raise TokenError("invalid token expiry")

        if int(now if now is not None else time.time()) > exp:
            raise TokenExpired("token expired")
        return claims
