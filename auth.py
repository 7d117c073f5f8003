"""
Authentication routes and dependencies
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import CredentialService, get_credential_service, hash_password, verify_password
from backend.auth.user import AuthUser
from backend.utils.errors import AuthenticationError, NotFoundError, ValidationError
from backend.utils.responses import success_response
from crud.user import UserRepository
from database import get_db
from models.user import UserOut
from utils.security_utils import validate_email, validate_password_strength

logger = logging.getLogger(__name__)

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


# Request models
class RegisterRequest(BaseModel):
    email: str
    password: str
    full_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


def authenticate(authorization: Optional[str], credentials: CredentialService) -> AuthUser:
    """
    Resolve an Authorization header to an identity.

    Pure function of the header value: no database access. Every failure
    (missing header, wrong scheme, empty or invalid token) is the same
    AuthenticationError.
    """
    if not authorization:
        raise AuthenticationError()

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError()

    user_id = credentials.validate(token.strip())
    return AuthUser(user_id=user_id)


# Dependency for protected routes
async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    credentials: CredentialService = Depends(get_credential_service),
) -> AuthUser:
    """
    Dependency function to get current authenticated user.
    Runs before the route handler and either yields an AuthUser or ends the
    request with 401.
    """
    return authenticate(authorization, credentials)


async def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    credentials: CredentialService = Depends(get_credential_service),
) -> Optional[AuthUser]:
    """
    Like get_current_user, but a request without an Authorization header is
    anonymous (None). A header that is present must still be valid.
    """
    if authorization is None:
        return None
    return authenticate(authorization, credentials)


def _auth_payload(token: str, user) -> dict:
    return {
        "token": token,
        "user": UserOut.model_validate(user).model_dump(mode="json"),
    }


@auth_router.post("/register")
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialService = Depends(get_credential_service),
):
    """Create a new user account on the free plan"""
    email = request.email.strip().lower()

    if not validate_email(email):
        raise ValidationError("Invalid email format")

    try:
        validate_password_strength(request.password)
    except ValueError as e:
        raise ValidationError(str(e))

    user_repo = UserRepository(db)

    # Check if email already exists
    if await user_repo.get_user_by_email(email):
        raise ValidationError("Email already exists")

    user_data = {
        "email": email,
        "password_hash": hash_password(request.password),
        "full_name": request.full_name,
    }

    try:
        user = await user_repo.create_user(user_data)
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        await db.rollback()
        raise ValidationError("Email already exists")

    logger.info(f"Registered user {user.id}")
    token = credentials.issue(user.id)
    return success_response(_auth_payload(token, user))


@auth_router.post("/login")
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialService = Depends(get_credential_service),
):
    """Login and get JWT token"""
    user = await UserRepository(db).get_user_by_email(request.email.strip())

    # Unknown email and wrong password are indistinguishable to the caller
    if not user or not verify_password(request.password, user.password_hash):
        raise AuthenticationError()

    token = credentials.issue(user.id)
    return success_response(_auth_payload(token, user))


@auth_router.get("/me")
async def get_current_user_info(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get current user information"""
    user = await UserRepository(db).get_user_by_id(current_user.user_id)
    if not user:
        raise NotFoundError("User not found")
    return success_response(UserOut.model_validate(user).model_dump(mode="json"))
