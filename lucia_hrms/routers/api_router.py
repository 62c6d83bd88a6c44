from fastapi import APIRouter
from lucia_hrms.routers import auth, leave, notifications

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(auth.router, tags=["Authentication"])
api_router.include_router(leave.router, tags=["Leave"])
api_router.include_router(notifications.router, tags=["Notifications"])
