from pydantic import EmailStr, field_validator

from ceycanvas.config import settings
from ceycanvas.schemas.common import CamelModel

OTP_LENGTH = settings.otp_length


class ArtistOtpVerifyRequest(CamelModel):
    email: EmailStr
    otp: str

    @field_validator("otp")
    @classmethod
    def normalize_otp(cls, value: str) -> str:
        cleaned = value.strip()
        if len(cleaned) != OTP_LENGTH or not cleaned.isdigit():
            raise ValueError(f"Please enter a {OTP_LENGTH}-digit OTP")
        return cleaned


class ArtistOtpResendRequest(CamelModel):
    email: EmailStr


class ArtistOtpResponse(CamelModel):
    message: str
    email: str
    expires_in_seconds: int


class OtpRemainingResponse(CamelModel):
    email: str
    remaining_seconds: int
