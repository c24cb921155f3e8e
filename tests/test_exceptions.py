"""Tests for the Herald exception hierarchy."""

import pytest

from herald.exceptions import (
    AuthenticationError,
    ConfigurationError,
    HeraldError,
    NotFoundError,
    SigningError,
    ValidationError,
)


class TestHeraldError:
    """Tests for the base HeraldError class."""

    def test_error_message(self):
        error = HeraldError("Something went wrong")
        assert error.message == "Something went wrong"
        assert str(error) == "Something went wrong"

    def test_to_dict(self):
        assert HeraldError("boom").to_dict() == {
            "error": {"code": "herald_error", "message": "boom"}
        }

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (ValidationError("secret", "must not be empty"), "validation_error"),
            (NotFoundError("subscription", "whk_1"), "not_found"),
            (SigningError("empty secret"), "signing_error"),
            (ConfigurationError("missing"), "configuration_error"),
            (AuthenticationError("Invalid signature"), "authentication_error"),
        ],
    )
    def test_hierarchy_and_codes(self, error, code):
        assert isinstance(error, HeraldError)
        assert error.code == code


class TestValidationError:
    def test_fields(self):
        error = ValidationError("profile_id", "is required")
        assert error.field == "profile_id"
        assert error.message == "profile_id: is required"
        assert error.to_dict()["error"]["field"] == "profile_id"


class TestNotFoundError:
    def test_fields(self):
        error = NotFoundError("heartbeat", "hubspot_webhook")
        assert error.message == "heartbeat not found: hubspot_webhook"
        assert error.to_dict() == {
            "error": {
                "code": "not_found",
                "resource_type": "heartbeat",
                "resource_id": "hubspot_webhook",
                "message": "heartbeat not found: hubspot_webhook",
            }
        }
