from datetime import timedelta

import pytest
from litestar.exceptions import NotAuthorizedException

from emoset.auth import (
    authenticate_credentials,
    create_jwt_token,
    decode_jwt_token,
    hash_password,
    verify_password,
)
from emoset.config import Config


def test_password_hash_round_trip():
    stored = hash_password("hunter2", iterations=1000)
    assert stored.startswith("pbkdf2_sha256$1000$")
    assert verify_password("hunter2", stored)
    assert not verify_password("hunter3", stored)


def test_malformed_hash_never_verifies():
    assert not verify_password("hunter2", "plaintext")
    assert not verify_password("hunter2", "md5$1$salt$abc")


def test_token_round_trip():
    token = create_jwt_token("celina@example.com", "secret", name="Celina")
    data = decode_jwt_token(token, "secret")
    assert data.email == "celina@example.com"
    assert data.name == "Celina"


def test_expired_token_rejected():
    token = create_jwt_token("celina@example.com", "secret", expires_delta=timedelta(seconds=-5))
    with pytest.raises(NotAuthorizedException, match="expired"):
        decode_jwt_token(token, "secret")


def test_wrong_secret_rejected():
    token = create_jwt_token("celina@example.com", "secret")
    with pytest.raises(NotAuthorizedException):
        decode_jwt_token(token, "other")


def test_authenticate_credentials(config):
    user = authenticate_credentials("Celina@Example.com", "hunter2", config)
    assert user.email == "celina@example.com"
    assert user.name == "Celina"

    with pytest.raises(NotAuthorizedException):
        authenticate_credentials("celina@example.com", "wrong", config)
    with pytest.raises(NotAuthorizedException):
        authenticate_credentials("nobody@example.com", "hunter2", config)


def test_authenticate_without_auth_config():
    with pytest.raises(NotAuthorizedException):
        authenticate_credentials("celina@example.com", "hunter2", Config())
