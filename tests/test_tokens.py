"""Session tokens."""

import base64

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from zkp_auth.tokens import (
    TokenError,
    TokenExpired,
    TokenIssuer,
    b64url_decode,
    b64url_encode,
    load_ed25519_private_key_from_b64,
    load_or_generate_key,
)


def test_b64url_round_trip_without_padding():
    raw = b"\x00\x01\xfe\xff?"
    enc = b64url_encode(raw)
    assert "=" not in enc
    assert b64url_decode(enc) == raw


def test_issue_and_validate(issuer):
    token = issuer.issue("acct-1", now=1_000)
    assert token.startswith("v1.")

    claims = issuer.validate(token, now=1_010)
    assert claims["sub"] == "acct-1"
    assert claims["typ"] == "session"
    assert claims["expires_at"] == 1_900


def test_expired(issuer):
    token = issuer.issue("acct-1", now=1_000)
    with pytest.raises(TokenExpired):
        issuer.validate(token, now=1_901)


def test_tampered_payload(issuer):
    token = issuer.issue("acct-1", now=1_000)
    _, payload, sig = token.split(".")
    forged = b64url_decode(payload).replace(b"acct-1", b"acct-2")
    with pytest.raises(TokenError):
        issuer.validate(f"v1.{b64url_encode(forged)}.{sig}", now=1_010)


def test_other_key_rejected(issuer):
    other = TokenIssuer(Ed25519PrivateKey.generate())
    with pytest.raises(TokenError):
        issuer.validate(other.issue("acct-1"))


@pytest.mark.parametrize("token", ["", "garbage", "v2.a.b", "v1.only-two"])
def test_bad_format(issuer, token):
    with pytest.raises(TokenError):
        issuer.validate(token)


def test_load_key_from_b64():
    seed = bytes(range(32))
    sk = load_ed25519_private_key_from_b64(base64.b64encode(seed).decode("ascii"))
    issuer = TokenIssuer(sk)
    assert TokenIssuer(load_or_generate_key(base64.b64encode(seed).decode())).validate(issuer.issue("x"))


def test_load_key_wrong_length():
    with pytest.raises(ValueError):
        load_ed25519_private_key_from_b64(base64.b64encode(b"short").decode("ascii"))


def test_generate_when_unset():
    assert isinstance(load_or_generate_key(""), Ed25519PrivateKey)
