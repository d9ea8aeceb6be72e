from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from ceycanvas.schemas.common import CamelModel


class SocialLinks(CamelModel):
    website: Optional[str] = None
    instagram: Optional[str] = None
    twitter: Optional[str] = None
    facebook: Optional[str] = None
    whatsapp: Optional[str] = None


class RegisterRequest(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    is_artist: bool = False
    bio: Optional[str] = Field(default=None, max_length=2000)
    phone: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=255)
    country: Optional[str] = Field(default=None, max_length=100)
    terms_accepted: bool = False
    terms_version: Optional[int] = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Name is required")
        return cleaned

    @field_validator("bio", "phone", "address", "country")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class ProfileUpdateRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=120)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)
    profile_image: Optional[str] = Field(default=None, max_length=512)
    bio: Optional[str] = Field(default=None, max_length=2000)
    social_links: Optional[SocialLinks] = None


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    is_admin: bool = False
    is_artist: bool = False
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    social_links: Optional[SocialLinks] = None
    created_at: Optional[datetime] = None
    token: Optional[str] = None


class PublicUserResponse(CamelModel):
    id: int
    name: str
    profile_image: Optional[str] = None
    is_artist: Optional[bool] = None
