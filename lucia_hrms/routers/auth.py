import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from lucia_hrms.core.config import settings
from lucia_hrms.core.exceptions import AccessDeniedError, AuthenticationError
from lucia_hrms.core.limiter import limiter
from lucia_hrms.core.schemas import ApiResponse
from lucia_hrms.database import get_db
from lucia_hrms.models.user import User
from lucia_hrms.routers.auth_deps import get_current_user
from lucia_hrms.schemas.auth import LoginRequest, Token, UserResponse
from lucia_hrms.services import auth as auth_service
from lucia_hrms.services.audit import AuditService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/login", response_model=ApiResponse[Token])
@limiter.limit(f"{settings.login_rate_limit_per_minute}/minute")
def login(request: Request, login_data: LoginRequest, db: Session = Depends(get_db)):
    # Note: Using JSON LoginRequest instead of form-data for frontend compatibility
    user = db.query(User).filter(User.email == login_data.email).first()
    if not user or not auth_service.verify_password(login_data.password, user.hashed_password):
        logger.warning(f"Failed login for {login_data.email}")
        raise AuthenticationError("Incorrect email or password")

    if not user.is_active:
        raise AccessDeniedError("User is inactive")

    access_token = auth_service.create_access_token(data={
        "sub": user.email,
        "user_id": user.id,
        "role": user.role.value,
        "type": "access",
    })

    AuditService.log(
        db,
        action="login",
        entity_type="user",
        entity_id=user.id,
        user_id=user.id,
        user_role=user.role,
        details={"email": user.email},
    )
    db.commit()

    return ApiResponse.ok(Token(
        access_token=access_token,
        expires_in=settings.access_token_expire_minutes * 60,
    ))


@router.get("/me", response_model=ApiResponse[UserResponse])
def read_current_user(current_user: User = Depends(get_current_user)):
    return ApiResponse.ok(UserResponse.model_validate(current_user))
