"""
Registration and login API endpoints
"""
from fastapi import APIRouter
import logging

from oab_prep.schemas.user import LoginRequest, RegisterRequest, UserPublic
from oab_prep.services.user_service import user_service

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/register", response_model=UserPublic, status_code=201)
async def register(request: RegisterRequest):
    """
    Create a student or mentor profile

    - Email must be well formed and not registered yet (any case)
    - Name and password are required
    """
    profile = user_service.register(
        name=request.name,
        email=request.email,
        password=request.password,
        role=request.role
    )
    return UserPublic.from_profile(profile)


@router.post("/login", response_model=UserPublic)
async def login(request: LoginRequest):
    """Match email (any case) and password against the registry"""
    profile = user_service.login(request.email, request.password)
    logger.info(f"User {profile.id} logged in")
    return UserPublic.from_profile(profile)
