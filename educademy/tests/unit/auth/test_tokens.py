"""Tests for JWT access-token utilities."""

from datetime import timedelta

import pytest

from educademy.auth.tokens import create_access_token, decode_access_token, extract_user_id
from educademy.config.models import AuthConfig
from educademy.exceptions import InvalidCredentialError


class TestAccessTokens:
    """Test token issue and verification."""

    def test_round_trip(self, auth_config: AuthConfig):
        token = create_access_token({"userId": 42, "role": "STUDENT"}, auth_config)

        claims = decode_access_token(token, auth_config)

        assert claims["userId"] == 42
        assert claims["role"] == "STUDENT"
        assert "exp" in claims

    def test_expired_token_rejected(self, auth_config: AuthConfig):
        token = create_access_token({"userId": 42}, auth_config, expires_delta=timedelta(seconds=-30))

        with pytest.raises(InvalidCredentialError):
            decode_access_token(token, auth_config)

    def test_forged_token_rejected(self, auth_config: AuthConfig):
        forger = AuthConfig(jwt_secret="some-other-secret")
        token = create_access_token({"userId": 42}, forger)

        with pytest.raises(InvalidCredentialError):
            decode_access_token(token, auth_config)

    def test_garbage_rejected(self, auth_config: AuthConfig):
        with pytest.raises(InvalidCredentialError):
            decode_access_token("not-a-jwt", auth_config)


class TestExtractUserId:
    """Test subject claim lookup."""

    def test_claim_precedence(self):
        assert extract_user_id({"userId": 1, "id": 2, "sub": "3"}) == 1
        assert extract_user_id({"id": 2, "sub": "3"}) == 2
        assert extract_user_id({"sub": "3"}) == 3

    def test_missing_subject(self):
        with pytest.raises(InvalidCredentialError):
            extract_user_id({"role": "STUDENT"})

    def test_non_numeric_subject(self):
        with pytest.raises(InvalidCredentialError):
            extract_user_id({"sub": "ada@example.com"})
