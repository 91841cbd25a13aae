"""HTTP route definitions for the account service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any

import jwt
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import AfterValidator, BaseModel, EmailStr, Field

from .errors import ApiResponse
from ..domain.account import Account
from ..domain.contracts import CreateAccountInput, UpdateAccountInput
from ..domain.errors import AuthenticationRequiredError, RateLimitedError
from ..domain.service import AccountService
from ..security.passwords import MAX_PASSWORD_BYTES, password_too_long
from ..security.rate_limiter import LoginThrottle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

bearer_scheme = HTTPBearer(auto_error=False)


def _check_password_length(value: str) -> str:
    if password_too_long(value):
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# bcrypt cannot hash more than 72 bytes, so longer passwords are a client error.
Password = Annotated[str, Field(min_length=1), AfterValidator(_check_password_length)]


class AccountResponse(BaseModel):
    """Serialised representation of an `Account` aggregate, without credentials."""

    account_id: str
    username: str
    email: str
    is_active: bool
    files: list[dict[str, Any]]
    created_at: datetime

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            account_id=account.account_id,
            username=account.username,
            email=account.email,
            is_active=account.is_active,
            files=account.files,
            created_at=account.created_at,
        )


class SignupRequest(BaseModel):
    """Payload accepted when registering a new account."""

    username: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    password: Password


class SignupResponse(BaseModel):
    verification_token: str


class LoginRequest(BaseModel):
    """Credentials exchanged for an access token."""

    email: str = Field(..., min_length=1)
    password: Password


class TokenResponse(BaseModel):
    """Token issuance response containing the bearer token and metadata."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UpdateAccountRequest(BaseModel):
    """Partial profile update; omitted fields keep their stored values."""

    username: str | None = Field(default=None, min_length=1, max_length=64)
    email: EmailStr | None = None
    password: Password | None = None


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_login_throttle(request: Request) -> LoginThrottle:
    throttle: LoginThrottle = request.app.state.login_throttle
    return throttle


def require_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    service: AccountService = Depends(get_service),
) -> dict[str, Any]:
    """Return the claims of a valid bearer access token or reject with 401."""
    if credentials is None:
        raise AuthenticationRequiredError()
    try:
        return service.tokens.decode(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise AuthenticationRequiredError("Invalid or expired token") from exc


@router.post(
    "/users/signup",
    response_model=ApiResponse[SignupResponse],
    status_code=status.HTTP_201_CREATED,
)
def signup(
    payload: SignupRequest,
    service: AccountService = Depends(get_service),
) -> ApiResponse[SignupResponse]:
    """Register a pending account and email its verification link."""
    logger.debug("received signup request")
    _, token = service.signup(
        CreateAccountInput(
            username=payload.username,
            email=payload.email,
            password=payload.password,
        )
    )
    return ApiResponse(
        message="User created successfully",
        data=SignupResponse(verification_token=token),
    )


@router.post("/auth/login", response_model=ApiResponse[TokenResponse])
def login(
    request: Request,
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
    throttle: LoginThrottle = Depends(get_login_throttle),
) -> ApiResponse[TokenResponse]:
    """Issue a signed access token for valid credentials."""
    client_host = request.client.host if request.client else "unknown"
    decision = throttle.check(f"login:{client_host}")
    if not decision.allowed:
        raise RateLimitedError(decision.retry_after)
    token = service.login(payload.email, payload.password)
    return ApiResponse(
        message="Login successful",
        data=TokenResponse(access_token=token.access_token, expires_in=token.expires_in),
    )


@router.post("/users/uploads/s3", response_model=ApiResponse[dict[str, Any]])
def upload_file_to_object_storage(
    file: UploadFile = File(...),
    user_id: str = Form(...),
    _claims: dict[str, Any] = Depends(require_access_token),
    service: AccountService = Depends(get_service),
) -> ApiResponse[dict[str, Any]]:
    """Upload a file to object storage and attach its metadata to the account."""
    metadata = service.upload_to_object_storage(
        user_id, file.file.read(), file.filename or "upload", file.content_type
    )
    return ApiResponse(message="File uploaded successfully", data=metadata)


@router.post("/users/uploads/server", response_model=ApiResponse[dict[str, Any]])
def upload_file_to_server(
    file: UploadFile = File(...),
    user_id: str = Form(...),
    _claims: dict[str, Any] = Depends(require_access_token),
    service: AccountService = Depends(get_service),
) -> ApiResponse[dict[str, Any]]:
    """Store a file in the local upload directory and attach its metadata to the account."""
    metadata = service.upload_to_local_disk(
        user_id, file.file.read(), file.filename or "upload", file.content_type
    )
    return ApiResponse(message="File uploaded successfully", data=metadata)


@router.post("/users/verify/{account_id}", response_model=ApiResponse[dict[str, Any]])
def verify_account(
    account_id: str,
    token: str | None = None,
    service: AccountService = Depends(get_service),
) -> ApiResponse[dict[str, Any]]:
    """Redeem the verification link sent at signup."""
    service.verify_account(account_id, token)
    return ApiResponse(message="User verified successfully", data={})


@router.get("/users/{account_id}", response_model=ApiResponse[AccountResponse])
def get_account(
    account_id: str,
    _claims: dict[str, Any] = Depends(require_access_token),
    service: AccountService = Depends(get_service),
) -> ApiResponse[AccountResponse]:
    account = service.get_account(account_id)
    return ApiResponse(
        message="User fetched successfully",
        data=AccountResponse.from_domain(account),
    )


@router.patch("/users/{account_id}", response_model=ApiResponse[AccountResponse])
def update_account(
    account_id: str,
    payload: UpdateAccountRequest,
    _claims: dict[str, Any] = Depends(require_access_token),
    service: AccountService = Depends(get_service),
) -> ApiResponse[AccountResponse]:
    """Apply a partial update to the account profile."""
    account = service.update_account(
        account_id,
        UpdateAccountInput(
            username=payload.username,
            email=payload.email,
            password=payload.password,
        ),
    )
    return ApiResponse(
        message="User updated successfully",
        data=AccountResponse.from_domain(account),
    )
