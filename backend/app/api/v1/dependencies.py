"""
API Dependencies
Shared dependencies for authentication, Supabase access, and authorization
"""
from typing import Optional
from fastapi import Depends, HTTPException, status, Header
from supabase import create_client, Client
from pydantic import BaseModel
from dotenv import load_dotenv

from app.core.config import get_settings
from app.core.validation import ConfigurationError
from app.services.admin_service import AdminService, get_admin_service
from app.services.lead_service import LeadService, build_lead_service

load_dotenv()

DEFAULT_ROLE = "staff"


class CurrentUser(BaseModel):
    """Current authenticated user model"""
    id: str
    email: str
    role: str = DEFAULT_ROLE
    access_token: str = ""


def get_supabase() -> Client:
    """
    Get an anon-key Supabase client.

    Raises:
        ConfigurationError: If Supabase URL or anon key is not configured
    """
    settings = get_settings()

    if not settings.supabase_url:
        raise ConfigurationError(
            "SUPABASE_URL is not configured. "
            "Set SUPABASE_URL environment variable."
        )
    if not settings.supabase_anon_key:
        raise ConfigurationError(
            "SUPABASE_ANON_KEY is not configured. "
            "Set SUPABASE_ANON_KEY environment variable."
        )

    return create_client(settings.supabase_url, settings.supabase_anon_key)


def parse_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from a "Bearer <token>" header value."""
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Use: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return parts[1]


def verify_token(token: str, supabase: Client) -> Optional[CurrentUser]:
    """
    Resolve an access token to a CurrentUser.

    Returns None if Supabase does not recognise the token.
    """
    user_response = supabase.auth.get_user(token)
    if not user_response or not user_response.user:
        return None

    auth_user = user_response.user
    metadata = auth_user.user_metadata or {}
    return CurrentUser(
        id=str(auth_user.id),
        email=auth_user.email or "",
        role=metadata.get("role") or DEFAULT_ROLE,
        access_token=token,
    )


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    supabase: Client = Depends(get_supabase)
) -> CurrentUser:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        authorization: Bearer token from Authorization header
        supabase: Supabase client

    Returns:
        CurrentUser object with user details

    Raises:
        HTTPException: If token is invalid or expired
    """
    token = parse_bearer_token(authorization)

    try:
        user = verify_token(token, supabase)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    """
    Dependency to require admin role.

    Raises:
        HTTPException: If user is not an admin
    """
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def get_user_supabase(
    current_user: CurrentUser = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
) -> Client:
    """Supabase client whose PostgREST requests carry the caller's JWT."""
    supabase.postgrest.auth(current_user.access_token)
    return supabase


def get_lead_service(supabase: Client = Depends(get_user_supabase)) -> LeadService:
    return build_lead_service(supabase)


def get_admin() -> AdminService:
    return get_admin_service()
