"""
Admin Service
Provisions dashboard staff accounts through the Supabase Auth admin API.
This is the only place the service-role key is used.
"""
import logging
from typing import Any, Callable, Dict, Optional

from supabase import Client, create_client

from app.core.validation import ConfigurationError

logger = logging.getLogger(__name__)

MISSING_SERVICE_KEY_MESSAGE = "Server configuration error: Missing Service Role Key"

ROLES = ("admin", "staff")


class AdminServiceError(Exception):
    """Raised when Supabase rejects an admin request."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class AdminService:
    """
    Wraps a service-role Supabase client.

    The client is created lazily so that a missing key only fails admin
    requests, never the rest of the API.
    """

    def __init__(
        self,
        supabase_url: str,
        service_role_key: str,
        client_factory: Callable[[str, str], Client] = create_client,
    ):
        self.supabase_url = supabase_url
        self.service_role_key = service_role_key
        self._client_factory = client_factory
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        if not self.supabase_url or not self.service_role_key:
            logger.error("Admin request rejected: service role key is not configured")
            raise ConfigurationError(MISSING_SERVICE_KEY_MESSAGE)
        if self._client is None:
            self._client = self._client_factory(self.supabase_url, self.service_role_key)
        return self._client

    def create_user(self, email: str, password: str, role: str = "staff") -> Dict[str, Any]:
        """
        Create a confirmed auth user with a dashboard role.

        Args:
            email: Login email
            password: Initial password
            role: "admin" or "staff"; stored in user_metadata.role

        Returns:
            Dict with id, email and role of the new user

        Raises:
            AdminServiceError: If input is incomplete or Supabase rejects it
            ConfigurationError: If the service-role key is missing
        """
        if not email or not password:
            raise AdminServiceError("Email and password are required")
        if role not in ROLES:
            raise AdminServiceError(f"Invalid role: {role}")

        client = self._get_client()

        try:
            response = client.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {"role": role},
            })
        except Exception as e:
            logger.error(f"Failed to create user {email}: {e}")
            raise AdminServiceError(str(e))

        user = response.user
        if user is None:
            raise AdminServiceError("Supabase returned no user")

        logger.info(f"Created {role} user {user.id}")
        return {"id": str(user.id), "email": user.email, "role": role}


def get_admin_service() -> AdminService:
    from app.core.config import get_settings
    settings = get_settings()
    return AdminService(settings.supabase_url, settings.supabase_service_role_key)
