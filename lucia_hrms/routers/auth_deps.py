"""
Authentication and capability dependencies for FastAPI endpoints.
"""
import logging

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from lucia_hrms.core.exceptions import AccessDeniedError, AuthenticationError
from lucia_hrms.database import get_db
from lucia_hrms.models.user import User
from lucia_hrms.schemas.auth import TokenData
from lucia_hrms.services import auth as auth_service
from lucia_hrms.services.approval_policy import Actor, ApprovalPolicy, default_policy, resolve_actor

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """
    Extracts and validates the current user from the JWT token.
    """
    payload = auth_service.decode_access_token(token)

    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise AuthenticationError()

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise AuthenticationError("TOKEN_EXPIRED")

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise AuthenticationError("Invalid token type")

    email = payload.get("sub")
    if email is None:
        logger.warning("Authentication failed: Missing subject (email) in token")
        raise AuthenticationError("Missing subject in token")

    token_data = TokenData(email=email, role=payload.get("role"))
    user = db.query(User).filter(User.email == token_data.email).first()

    if user is None:
        logger.warning(f"Authentication failed: User {email} not found in database")
        raise AuthenticationError("User not found")
    if not user.is_active:
        logger.warning(f"Authentication failed: User {email} is inactive")
        raise AccessDeniedError("User is inactive")
    return user


def get_current_actor(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Actor:
    """Resolve the caller into the (user, role, scope) tuple the workflow consumes."""
    return resolve_actor(db, current_user)


def get_approval_policy() -> ApprovalPolicy:
    """Override in app.dependency_overrides to swap the capability policy."""
    return default_policy
