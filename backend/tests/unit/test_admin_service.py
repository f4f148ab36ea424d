"""
Unit tests for AdminService
"""
from unittest.mock import MagicMock

import pytest

from app.core.validation import ConfigurationError
from app.services.admin_service import AdminService, AdminServiceError


def _service(url="https://test.supabase.co", key="service-role-key"):
    client = MagicMock()
    client.auth.admin.create_user.return_value.user = MagicMock(id="u-1", email="staff@example.com")
    factory = MagicMock(return_value=client)
    return AdminService(url, key, client_factory=factory), client, factory


class TestAdminServiceErrors:
    """Tests for error types"""

    def test_error_carries_message(self):
        error = AdminServiceError("Email and password are required")
        assert error.message == "Email and password are required"


class TestCreateUser:
    """Tests for create_user"""

    def test_creates_confirmed_user_with_role(self):
        service, client, factory = _service()

        user = service.create_user("staff@example.com", "secret123", role="staff")

        factory.assert_called_once_with("https://test.supabase.co", "service-role-key")
        client.auth.admin.create_user.assert_called_once_with({
            "email": "staff@example.com",
            "password": "secret123",
            "email_confirm": True,
            "user_metadata": {"role": "staff"},
        })
        assert user == {"id": "u-1", "email": "staff@example.com", "role": "staff"}

    def test_missing_service_key_is_a_configuration_error(self):
        service, _, factory = _service(key="")

        with pytest.raises(ConfigurationError) as exc_info:
            service.create_user("staff@example.com", "secret123")

        assert exc_info.value.message == "Server configuration error: Missing Service Role Key"
        factory.assert_not_called()

    def test_missing_credentials_are_rejected(self):
        service, client, _ = _service()

        with pytest.raises(AdminServiceError, match="Email and password are required"):
            service.create_user("", "secret123")
        client.auth.admin.create_user.assert_not_called()

    def test_unknown_role_is_rejected(self):
        service, _, _ = _service()

        with pytest.raises(AdminServiceError):
            service.create_user("a@example.com", "secret123", role="owner")

    def test_supabase_error_is_wrapped(self):
        service, client, _ = _service()
        client.auth.admin.create_user.side_effect = RuntimeError("User already registered")

        with pytest.raises(AdminServiceError, match="User already registered"):
            service.create_user("a@example.com", "secret123")

    def test_client_is_created_once(self):
        service, _, factory = _service()

        service.create_user("a@example.com", "secret123")
        service.create_user("b@example.com", "secret123", role="admin")

        factory.assert_called_once()
