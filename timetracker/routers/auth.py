"""Auth router - API endpoints for authentication."""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import BaseModel

from timetracker.database import get_database
from timetracker.models.user import Caller, User, UserCreate
from timetracker.services.auth_service import AuthService, InvalidCredentials
from timetracker.utils.auth import verify_access_token


router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)


class LoginRequest(BaseModel):
    """Login request model."""

    email: str
    password: str


class TokenResponse(BaseModel):
    """Token response model."""

    access_token: str
    token_type: str = "bearer"


@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db=Depends(get_database)):
    """
    Register a new user.

    Raises:
        ConflictError: If email is already registered (409)
    """
    service = AuthService(db)
    return await service.register_user(
        email=user.email,
        password=user.password,
        full_name=user.full_name,
    )


@router.post("/login", response_model=TokenResponse)
async def login(login_req: LoginRequest, db=Depends(get_database)):
    """
    Login user and return access token.

    Raises:
        HTTPException: If credentials are invalid (401)
    """
    service = AuthService(db)

    try:
        token = await service.login(
            email=login_req.email,
            password=login_req.password,
        )
        return TokenResponse(access_token=token)
    except InvalidCredentials as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Caller:
    """
    Dependency building the session context from the bearer token.

    Raises:
        HTTPException: If token is missing or invalid (401)
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        return verify_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )


@router.get("/me", response_model=User)
async def get_current_user(
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_database),
):
    """Get current authenticated user."""
    service = AuthService(db)
    return await service.get_user_by_id(caller.user_id)
