"""
Admin Endpoints
Provisioning of dashboard login accounts
Requires admin role
"""
import logging
from typing import Literal

from fastapi import APIRouter, HTTPException, Depends, status
from pydantic import BaseModel, EmailStr, Field

from app.api.v1.dependencies import get_admin, require_admin, CurrentUser
from app.core.validation import ConfigurationError
from app.services.admin_service import AdminService, AdminServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class CreateUserRequest(BaseModel):
    """New staff or admin account"""
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Literal["admin", "staff"] = "staff"


class UserResponse(BaseModel):
    """User response model"""
    id: str
    email: str
    role: str
    message: str = "User created successfully"


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    admin_user: CurrentUser = Depends(require_admin),
    admin_service: AdminService = Depends(get_admin)
):
    """
    Create a confirmed login account (admin only).

    Used by: /dashboard/admin "Add user" form.
    """
    try:
        user = admin_service.create_user(request.email, request.password, request.role)
        logger.info(f"Admin {admin_user.id} created user {user['id']}")
        return UserResponse(**user)

    except ConfigurationError:
        raise
    except AdminServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create user: {str(e)}"
        )
