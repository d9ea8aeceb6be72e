import logging
from typing import Union

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from pydantic import EmailStr

from ceycanvas.schemas.otp import (
    ArtistOtpResendRequest,
    ArtistOtpResponse,
    ArtistOtpVerifyRequest,
    OtpRemainingResponse,
)
from ceycanvas.schemas.users import (
    LoginRequest,
    ProfileUpdateRequest,
    PublicUserResponse,
    RegisterRequest,
    UserResponse,
)
from ceycanvas.services.email import send_otp_email, send_welcome_email
from ceycanvas.services.otp import OtpServiceError, otp_store
from ceycanvas.services.tokens import TokenError, create_access_token, decode_access_token
from ceycanvas.services.users import build_registration, user_store

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def get_current_user(authorization: str | None = Header(default=None)) -> UserResponse:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
        )
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header",
        )
    try:
        access_data = decode_access_token(token)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    user = user_store.get_user(access_data.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, user not found",
        )
    return user


def require_admin(user: UserResponse = Depends(get_current_user)) -> UserResponse:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized as an admin",
        )
    return user


def _with_token(user: UserResponse) -> UserResponse:
    try:
        token = create_access_token(user.id)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    return user.model_copy(update={"token": token})


def _issue_artist_otp(
    name: str, email: str, registration: dict, discard_on_failure: bool = True
) -> ArtistOtpResponse:
    try:
        code = otp_store.create_otp(email, registration)
    except OtpServiceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    result = send_otp_email(name, email, code)
    if not result.success:
        # A resend keeps the record so the pending registration survives.
        if discard_on_failure:
            otp_store.delete_otp(email)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send verification email",
        )
    return ArtistOtpResponse(
        message="Verification code sent to your email",
        email=email,
        expires_in_seconds=otp_store.ttl_seconds,
    )


@router.post(
    "/register",
    response_model=Union[UserResponse, ArtistOtpResponse],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def register(payload: RegisterRequest, response: Response):
    if user_store.email_exists(payload.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists",
        )
    if payload.is_artist and not payload.terms_accepted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You must accept the terms and conditions to register as an artist",
        )

    registration = build_registration(payload)
    if payload.is_artist:
        # The account only exists once the emailed code comes back.
        response.status_code = status.HTTP_200_OK
        return _issue_artist_otp(payload.name, registration["email"], registration)

    try:
        user = user_store.create_user(registration)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    send_welcome_email(user.name, user.email)
    return _with_token(user)


@router.post(
    "/verify-artist-otp",
    response_model=UserResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def verify_artist_otp(payload: ArtistOtpVerifyRequest) -> UserResponse:
    try:
        registration = otp_store.verify_otp(payload.email, payload.otp)
    except OtpServiceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    if registration is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired OTP",
        )
    try:
        user = user_store.create_user(registration)
    except ValueError as exc:
        otp_store.delete_otp(payload.email)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    otp_store.delete_otp(payload.email)
    LOGGER.info("Artist account %s created after email verification", user.id)
    send_welcome_email(user.name, user.email)
    return _with_token(user)


@router.post("/resend-artist-otp", response_model=ArtistOtpResponse)
def resend_artist_otp(payload: ArtistOtpResendRequest) -> ArtistOtpResponse:
    try:
        registration = otp_store.get_pending_registration(payload.email)
    except OtpServiceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    if registration is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No pending registration found for this email",
        )
    name = registration.get("name") or "Artist"
    return _issue_artist_otp(
        name, registration["email"], registration, discard_on_failure=False
    )


@router.get("/otp-remaining", response_model=OtpRemainingResponse)
def otp_remaining(email: EmailStr = Query(...)) -> OtpRemainingResponse:
    return OtpRemainingResponse(
        email=email.strip().lower(),
        remaining_seconds=otp_store.get_remaining_time(email),
    )


@router.post("/login", response_model=UserResponse, response_model_exclude_none=True)
def login(payload: LoginRequest) -> UserResponse:
    user = user_store.authenticate(payload.email, payload.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return _with_token(user)


@router.get("/profile", response_model=UserResponse, response_model_exclude_none=True)
def get_profile(user: UserResponse = Depends(get_current_user)) -> UserResponse:
    return user


@router.put("/profile", response_model=UserResponse, response_model_exclude_none=True)
def update_profile(
    payload: ProfileUpdateRequest, user: UserResponse = Depends(get_current_user)
) -> UserResponse:
    try:
        updated = user_store.update_profile(user.id, payload)
    except ValueError as exc:
        detail = str(exc)
        status_code = (
            status.HTTP_404_NOT_FOUND
            if "not found" in detail.lower()
            else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=status_code, detail=detail) from exc
    return _with_token(updated)


@router.get("/support", response_model=PublicUserResponse, response_model_exclude_none=True)
def get_support_user(_: UserResponse = Depends(get_current_user)) -> PublicUserResponse:
    support = user_store.get_support_user()
    if support is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Support unavailable")
    return support


@router.get("/users", response_model=list[UserResponse], response_model_exclude_none=True)
def list_users(_: UserResponse = Depends(require_admin)) -> list[UserResponse]:
    return user_store.list_users()


@router.get(
    "/users/{user_id}", response_model=PublicUserResponse, response_model_exclude_none=True
)
def get_user(user_id: int, _: UserResponse = Depends(get_current_user)) -> PublicUserResponse:
    user = user_store.get_public_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
