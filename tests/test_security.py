from datetime import timedelta

import pytest

from config import Settings
from errors import UnauthorizedError
from security import create_access_token, decode_access_token, hash_password, verify_password


def test_hash_is_not_plaintext():
    hashed = hash_password("secret")
    assert hashed != "secret"
    assert verify_password("secret", hashed)
    assert not verify_password("wrong", hashed)


def test_hash_is_salted():
    assert hash_password("secret") != hash_password("secret")


@pytest.mark.parametrize("stored", ["", None, "not-a-hash", "$2b$12$short"])
def test_malformed_hash_fails_verification(stored):
    assert verify_password("secret", stored) is False


def test_token_carries_subject():
    settings = Settings(jwt_secret="s3")
    token = create_access_token({"sub": "abc", "email": "a@x.com"}, settings)
    assert decode_access_token(token, settings) == "abc"


def test_token_signed_with_other_secret_is_rejected():
    token = create_access_token({"sub": "abc"}, Settings(jwt_secret="one"))
    with pytest.raises(UnauthorizedError) as exc:
        decode_access_token(token, Settings(jwt_secret="two"))
    assert exc.value.status_code == 401


def test_expired_token_is_rejected():
    settings = Settings(jwt_secret="s3")
    token = create_access_token({"sub": "abc"}, settings, expires_delta=timedelta(minutes=-1))
    with pytest.raises(UnauthorizedError):
        decode_access_token(token, settings)
