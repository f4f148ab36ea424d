"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from app.api.v1.endpoints import (
    leads,
    analytics,
    auth,
    admin,
    websockets,
)

api_router = APIRouter()

# Dashboard data
api_router.include_router(leads.router)
api_router.include_router(analytics.router)

# Accounts
api_router.include_router(auth.router)
api_router.include_router(admin.router)

# Live notifications
api_router.include_router(websockets.router)
