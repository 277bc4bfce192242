"""Token and password helper tests."""
from jose import jwt

from marketportal.core.config import settings
from marketportal.core.security import (
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)


class TestPasswordHashing:
    def test_round_trip(self):
        hashed = get_password_hash("s3cret!")
        assert hashed != "s3cret!"
        assert verify_password("s3cret!", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_malformed_hash(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestAccessTokens:
    def test_token_carries_session_epoch(self):
        token = create_access_token({"sub": "vendor"}, session_version=3)
        payload = decode_token(token)

        assert payload["sub"] == "vendor"
        assert payload["sv"] == 3
        assert "sid" not in payload
        assert "exp" in payload

    def test_token_carries_session_key(self):
        payload = decode_token(create_access_token({"sub": "vendor"}, session_key="abc123"))

        assert payload["sid"] == "abc123"
        assert payload["sv"] == 0

    def test_invalid_token(self):
        assert decode_token("garbage") is None

    def test_token_signed_with_other_key(self):
        token = jwt.encode({"sub": "vendor", "sv": 0}, "another-secret", algorithm=settings.ALGORITHM)

        assert decode_token(token) is None
