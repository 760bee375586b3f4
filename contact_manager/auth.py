"""Authentication and authorization related routes and helpers."""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi_limiter.depends import RateLimiter
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import schemas, crud
from .database import get_db
from .core import get_settings
from .errors import AuthError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)
router = APIRouter(prefix="/auth", tags=["auth"])

settings = get_settings()
auth_rate_limit = RateLimiter(
    times=settings.AUTH_RATE_LIMIT_TIMES, seconds=settings.AUTH_RATE_LIMIT_SECONDS
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a plain password with its hashed value."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate a salted password hash using the configured context."""
    return pwd_context.hash(password)


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT carrying the user id and an expiry."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> int:
    """
    Verify a bearer token and return the user id it carries.

    Args:
        token (str): Encoded JWT.

    Raises:
        AuthError: If the token is malformed, expired, badly signed or
            carries no usable subject.

    Returns:
        int: Identifier of the authenticated user.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = schemas.TokenData(**payload)
    except (JWTError, ValueError):
        raise AuthError("Token is not valid")
    try:
        return int(token_data.sub)
    except (TypeError, ValueError):
        raise AuthError("Token is not valid")


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> int:
    """Dependency that returns the authenticated user id from the bearer token."""

    if credentials is None or not credentials.credentials:
        raise AuthError("No token, authorization denied")
    return decode_access_token(credentials.credentials)


@router.post(
    "/register",
    response_model=schemas.AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
def register(user_in: schemas.UserCreate, db: Session = Depends(get_db)):
    """Register a new user and return a fresh token."""

    hashed_password = get_password_hash(user_in.password)
    user = crud.create_user(db, user_in.email, hashed_password)
    return schemas.AuthResponse(
        message="User registered successfully",
        token=create_access_token(user.id),
        user=schemas.UserOut.model_validate(user),
    )


@router.post(
    "/login",
    response_model=schemas.AuthResponse,
    dependencies=[Depends(auth_rate_limit)],
)
def login(credentials: schemas.UserLogin, db: Session = Depends(get_db)):
    """Authenticate user and return a fresh token.

    Unknown emails and wrong passwords produce the same error, and an
    unknown email still costs one hash verification.
    """

    user = crud.get_user_by_email(db, credentials.email)
    if user is None:
        pwd_context.dummy_verify()
        raise ValidationError("Invalid credentials")
    if not verify_password(credentials.password, user.hashed_password):
        logger.info("Failed login for user %s", user.id)
        raise ValidationError("Invalid credentials")
    return schemas.AuthResponse(
        message="Login successful",
        token=create_access_token(user.id),
        user=schemas.UserOut.model_validate(user),
    )


@router.get("/me", response_model=schemas.ProfileResponse)
def read_me(
    user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    """Return the profile of the authenticated user."""

    user = crud.get_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return schemas.ProfileResponse(user=schemas.UserProfile.model_validate(user))
