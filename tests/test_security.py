import base64
import json
import time
from datetime import timedelta

import pytest
from jose import jwt

from core.exceptions import BadSignatureError, MalformedTokenError, TokenExpiredError
from core.security import TokenClaims, TokenIssuer


def _b64(data: dict) -> str:
    raw = json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def test_issue_and_verify(token_issuer):
    token = token_issuer.issue("user-1", "editor")
    assert token_issuer.verify(token) == TokenClaims(user_id="user-1", role="editor")


def test_expiry_is_embedded(token_issuer):
    token = token_issuer.issue("user-1", "viewer")
    claims = jwt.get_unverified_claims(token)
    assert claims["exp"] - claims["iat"] == int(timedelta(days=7).total_seconds())


def test_expired_token(token_issuer):
    token = token_issuer.issue("user-1", "viewer", expires_delta=timedelta(seconds=-30))
    with pytest.raises(TokenExpiredError):
        token_issuer.verify(token)


def test_token_from_other_secret(token_issuer):
    forged = TokenIssuer("another-secret").issue("user-1", "admin")
    with pytest.raises(BadSignatureError):
        token_issuer.verify(forged)


def test_signature_checked_before_expiry(token_issuer):
    forged = TokenIssuer("another-secret").issue(
        "user-1", "admin", expires_delta=timedelta(seconds=-30)
    )
    with pytest.raises(BadSignatureError):
        token_issuer.verify(forged)


def test_tampered_payload(token_issuer):
    header, _, signature = token_issuer.issue("user-1", "viewer").split(".")
    payload = _b64({"sub": "user-1", "role": "admin", "exp": int(time.time()) + 3600})
    with pytest.raises(BadSignatureError):
        token_issuer.verify(f"{header}.{payload}.{signature}")


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", "only.two"])
def test_malformed_tokens(token_issuer, token):
    with pytest.raises(MalformedTokenError):
        token_issuer.verify(token)


def test_unknown_role_claim(token_issuer):
    token = jwt.encode(
        {"sub": "user-1", "role": "root", "exp": int(time.time()) + 3600},
        "test-secret",
        algorithm="HS256",
    )
    with pytest.raises(MalformedTokenError):
        token_issuer.verify(token)


def test_missing_subject(token_issuer):
    token = jwt.encode(
        {"role": "viewer", "exp": int(time.time()) + 3600}, "test-secret", algorithm="HS256"
    )
    with pytest.raises(MalformedTokenError):
        token_issuer.verify(token)


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        TokenIssuer("")
