"""
Unit tests for authentication.
"""

from datetime import timedelta

import pytest
from fastapi import HTTPException

from src.api.auth import (
    create_access_token,
    decode_token,
    validate_api_key,
)
from src.config import get_settings


class TestAuth:
    """Tests for authentication utilities."""

    def test_create_access_token(self):
        """Test JWT token creation."""
        token = create_access_token(subject="operator-1")

        assert token is not None
        assert isinstance(token, str)
        assert len(token) > 0

    def test_decode_valid_token(self):
        """Test decoding a valid token."""
        token = create_access_token(subject="operator-1")

        token_data = decode_token(token)

        assert token_data.subject == "operator-1"
        assert token_data.exp is not None

    def test_decode_expired_token(self):
        """Test decoding an expired token raises error."""
        # Create token that expired 1 hour ago
        token = create_access_token(
            subject="operator-1",
            expires_delta=timedelta(hours=-1),
        )

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401

    def test_decode_invalid_token(self):
        """Test decoding an invalid token raises error."""
        with pytest.raises(HTTPException) as exc_info:
            decode_token("invalid-token")

        assert exc_info.value.status_code == 401

    def test_validate_api_key_development_mode(self, monkeypatch: pytest.MonkeyPatch):
        """Any non-empty key is accepted when no admin key is configured."""
        monkeypatch.setattr(get_settings(), "api_admin_key", None)

        assert validate_api_key("valid-key", "operator-1") is True

    def test_validate_api_key_configured(self, monkeypatch: pytest.MonkeyPatch):
        """Only the configured admin key is accepted."""
        monkeypatch.setattr(get_settings(), "api_admin_key", "s3cret")

        assert validate_api_key("s3cret", "operator-1") is True
        assert validate_api_key("wrong", "operator-1") is False

    def test_validate_api_key_empty(self):
        """Test API key validation with empty values."""
        assert validate_api_key("", "operator") is False
        assert validate_api_key("key", "") is False
        assert validate_api_key("", "") is False
