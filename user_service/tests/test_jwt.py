"""
Tests for access token issuance and validation.
"""
from datetime import timedelta

import jwt
import pytest

from user_service.auth.errors import InvalidTokenError
from user_service.auth.jwt import TokenService, strip_bearer, utcnow
from user_service.config import Settings


def test_issue_then_validate_returns_subject(tokens):
    token = tokens.issue("ana@x.com")
    assert tokens.validate(token) == "ana@x.com"


def test_token_embeds_subject_and_expiry(settings, tokens):
    token = tokens.issue("ana@x.com")
    payload = jwt.decode(token, settings.jwt_secret_key, algorithms=["HS256"])
    assert payload["sub"] == "ana@x.com"
    assert payload["exp"] - payload["iat"] == 30 * 60


def test_create_token_reports_expiry(tokens):
    before = int(utcnow().timestamp())
    token = tokens.create_token("ana@x.com")
    assert token.token_type == "bearer"
    assert tokens.validate(token.access_token) == "ana@x.com"
    assert before + 30 * 60 <= token.expires_at <= before + 30 * 60 + 5


def test_token_valid_before_ttl_elapses(settings):
    issued = utcnow() - timedelta(minutes=29)
    service = TokenService(settings, clock=lambda: issued)
    token = service.issue("ana@x.com")
    assert TokenService(settings).validate(token) == "ana@x.com"


def test_token_invalid_after_ttl_elapses(settings):
    issued = utcnow() - timedelta(minutes=30, seconds=5)
    service = TokenService(settings, clock=lambda: issued)
    token = service.issue("ana@x.com")
    with pytest.raises(InvalidTokenError) as exc_info:
        TokenService(settings).validate(token)
    assert exc_info.value.message == "Token has expired"


def test_token_signed_with_other_key_is_rejected(settings, tokens):
    other = TokenService(settings.model_copy(update={"jwt_secret_key": "another-signing-key-entirely-0000"}))
    token = other.issue("ana@x.com")
    with pytest.raises(InvalidTokenError):
        tokens.validate(token)


def test_tampered_token_is_rejected(tokens):
    header, payload, signature = tokens.issue("ana@x.com").split(".")
    forged = jwt.encode(
        {"sub": "mallory@x.com", "exp": utcnow() + timedelta(hours=1)},
        "guessed-key-guessed-key-guessed-key",
        algorithm="HS256",
    )
    _, forged_payload, _ = forged.split(".")
    with pytest.raises(InvalidTokenError):
        tokens.validate(f"{header}.{forged_payload}.{signature}")


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", "Bearer"])
def test_malformed_tokens_are_rejected(tokens, token):
    with pytest.raises(InvalidTokenError):
        tokens.validate(token)


def test_token_without_subject_is_rejected(settings, tokens):
    token = jwt.encode(
        {"exp": utcnow() + timedelta(hours=1)}, settings.jwt_secret_key, algorithm="HS256"
    )
    with pytest.raises(InvalidTokenError):
        tokens.validate(token)


def test_token_without_expiry_is_rejected(settings, tokens):
    token = jwt.encode({"sub": "ana@x.com"}, settings.jwt_secret_key, algorithm="HS256")
    with pytest.raises(InvalidTokenError):
        tokens.validate(token)


def test_error_message_does_not_leak_key(settings, tokens):
    with pytest.raises(InvalidTokenError) as exc_info:
        tokens.validate("not-a-token")
    assert settings.jwt_secret_key not in str(exc_info.value)


def test_ttl_comes_from_settings():
    service = TokenService(Settings(jwt_secret_key="a-signing-key-for-ttl-checks", access_token_expire_minutes=5))
    assert service.ttl == timedelta(minutes=5)


@pytest.mark.parametrize("value, expected", [
    ("Bearer abc.def.ghi", "abc.def.ghi"),
    ("bearer abc.def.ghi", "abc.def.ghi"),
    ("  Bearer   abc.def.ghi ", "abc.def.ghi"),
    ("abc.def.ghi", "abc.def.ghi"),
])
def test_strip_bearer(value, expected):
    assert strip_bearer(value) == expected
