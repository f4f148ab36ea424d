"""
Authentication Endpoints
Email and password sign-in against Supabase Auth
"""
import logging

from fastapi import APIRouter, HTTPException, Depends, status
from pydantic import BaseModel, EmailStr
from supabase import Client

from app.api.v1.dependencies import get_supabase, get_current_user, CurrentUser, DEFAULT_ROLE

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


# ============================================
# Request/Response Models
# ============================================

class LoginRequest(BaseModel):
    """Login request"""
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    """Session tokens for the dashboard"""
    access_token: str
    refresh_token: str
    user_id: str
    email: str
    role: str
    message: str


class MeResponse(BaseModel):
    """Current user response"""
    id: str
    email: str
    role: str


# ============================================
# Endpoints
# ============================================

@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    supabase: Client = Depends(get_supabase)
):
    """
    Sign in with email and password.

    Accounts are created by an admin (POST /admin/users); there is no
    self-service registration.
    """
    try:
        auth_response = supabase.auth.sign_in_with_password({
            "email": request.email,
            "password": request.password,
        })
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Login failed: {str(e)}"
        )

    if not auth_response.session or not auth_response.user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    user = auth_response.user
    metadata = user.user_metadata or {}

    return LoginResponse(
        access_token=auth_response.session.access_token,
        refresh_token=auth_response.session.refresh_token,
        user_id=str(user.id),
        email=user.email or request.email,
        role=metadata.get("role") or DEFAULT_ROLE,
        message="Login successful"
    )


@router.get("/me", response_model=MeResponse)
async def get_me(
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Get current authenticated user info.

    Used by:
    - AuthContext on app load
    - Sidebar (admin links shown only for role "admin")
    """
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        role=current_user.role
    )


@router.post("/logout")
async def logout(
    current_user: CurrentUser = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
):
    """
    Logout the current user.

    The client should also clear the stored token.
    """
    try:
        supabase.auth.admin.sign_out(current_user.access_token)
    except Exception as e:
        # Token may already be revoked; the client clears it anyway
        logger.warning(f"Sign-out failed for user {current_user.id}: {e}")

    return {"detail": "Logged out"}
