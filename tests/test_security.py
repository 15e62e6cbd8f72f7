from datetime import timedelta

import pytest
from jose import jwt

import config
from errors import AuthenticationFailed, TokenExpired, TokenInvalid
from security import (
    authenticate,
    hash_password,
    is_token_valid,
    issue_token,
    verify_password,
    verify_token,
)


def test_issue_and_verify_token():
    token = issue_token("alice")
    assert verify_token(token) == "alice"
    assert verify_token(token, expected_identity="alice") == "alice"

    claims = jwt.get_unverified_claims(token)
    assert claims["exp"] - claims["iat"] == config.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def test_extra_claims_cannot_replace_subject():
    token = issue_token("alice", extra_claims={"sub": "mallory", "role": "USER"})
    claims = jwt.get_unverified_claims(token)
    assert claims["sub"] == "alice"
    assert claims["role"] == "USER"


def test_expired_token():
    token = issue_token("alice", expires_delta=timedelta(seconds=-5))
    with pytest.raises(TokenExpired):
        verify_token(token)
    assert not is_token_valid(token, "alice")


def test_tampered_and_malformed_tokens():
    forged = jwt.encode({"sub": "alice"}, "some-other-key", algorithm="HS256")
    with pytest.raises(TokenInvalid):
        verify_token(forged)
    with pytest.raises(TokenInvalid):
        verify_token("not-a-token")


def test_subject_must_match_expected_identity():
    token = issue_token("alice")
    with pytest.raises(TokenInvalid):
        verify_token(token, expected_identity="bob")
    assert is_token_valid(token, "alice")
    assert not is_token_valid(token, "bob")


def test_password_hashing():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)


def test_authenticate(db, alice):
    assert authenticate(db, "alice", "secret123").id == alice.id
    with pytest.raises(AuthenticationFailed):
        authenticate(db, "alice", "wrong-pass")
    with pytest.raises(AuthenticationFailed):
        authenticate(db, "nobody", "secret123")


def test_authenticate_rejects_locked_account(db, alice):
    alice.account_non_locked = False
    db.commit()
    with pytest.raises(AuthenticationFailed):
        authenticate(db, "alice", "secret123")
