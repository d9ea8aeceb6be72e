from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ceycanvas.database import session_scope
from ceycanvas.models.user import UserEntry
from ceycanvas.schemas.users import (
    ProfileUpdateRequest,
    PublicUserResponse,
    RegisterRequest,
    SocialLinks,
    UserResponse,
)
from ceycanvas.services.passwords import hash_password, verify_password


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def build_registration(payload: RegisterRequest) -> dict[str, Any]:
    """Serializable account payload; the password is hashed before it is stored anywhere."""
    return {
        "name": payload.name,
        "email": _normalize_email(payload.email),
        "password_hash": hash_password(payload.password),
        "is_artist": payload.is_artist,
        "bio": payload.bio or "",
        "phone": payload.phone or "",
        "address": payload.address or "",
        "country": payload.country or "",
        "terms_accepted": payload.terms_accepted,
        "terms_version": payload.terms_version,
    }


class UserStore:
    def email_exists(self, email: str) -> bool:
        key = _normalize_email(email)
        with session_scope() as session:
            result = session.execute(select(UserEntry.id).where(UserEntry.email == key))
            return result.first() is not None

    def create_user(self, registration: dict[str, Any]) -> UserResponse:
        now = datetime.now(timezone.utc)
        email = _normalize_email(registration["email"])
        try:
            with session_scope() as session:
                existing = session.execute(
                    select(UserEntry).where(UserEntry.email == email)
                ).scalar_one_or_none()
                if existing:
                    raise ValueError("User already exists")
                entry = UserEntry(
                    name=registration["name"],
                    email=email,
                    password_hash=registration["password_hash"],
                    is_admin=bool(registration.get("is_admin", False)),
                    is_artist=bool(registration.get("is_artist", False)),
                    bio=registration.get("bio") or "",
                    phone=registration.get("phone") or "",
                    address=registration.get("address") or "",
                    country=registration.get("country") or "",
                    terms_accepted=bool(registration.get("terms_accepted", False)),
                    terms_version=registration.get("terms_version"),
                    created_at=now,
                    updated_at=now,
                )
                session.add(entry)
                session.flush()
                return self._to_response(entry)
        except IntegrityError as exc:
            raise ValueError("User already exists") from exc

    def authenticate(self, email: str, password: str) -> UserResponse | None:
        key = _normalize_email(email)
        with session_scope() as session:
            entry = session.execute(
                select(UserEntry).where(UserEntry.email == key)
            ).scalar_one_or_none()
            if entry is None or not verify_password(password, entry.password_hash):
                return None
            return self._to_response(entry)

    def get_user(self, user_id: int) -> UserResponse | None:
        with session_scope() as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                return None
            return self._to_response(entry)

    def get_public_user(self, user_id: int) -> PublicUserResponse | None:
        with session_scope() as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                return None
            return PublicUserResponse(
                id=entry.id,
                name=entry.name,
                profile_image=entry.profile_image,
                is_artist=entry.is_artist,
            )

    def get_support_user(self) -> PublicUserResponse | None:
        with session_scope() as session:
            entry = session.execute(
                select(UserEntry)
                .where(UserEntry.is_admin.is_(True))
                .order_by(UserEntry.id)
            ).scalars().first()
            if entry is None:
                return None
            return PublicUserResponse(
                id=entry.id, name=entry.name, profile_image=entry.profile_image
            )

    def list_users(self) -> list[UserResponse]:
        with session_scope() as session:
            result = session.execute(select(UserEntry).order_by(UserEntry.id))
            return [self._to_response(entry) for entry in result.scalars().all()]

    def update_profile(self, user_id: int, payload: ProfileUpdateRequest) -> UserResponse:
        now = datetime.now(timezone.utc)
        with session_scope() as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                raise ValueError("User not found")

            if payload.email:
                email = _normalize_email(payload.email)
                if email != entry.email:
                    existing = session.execute(
                        select(UserEntry).where(UserEntry.email == email)
                    ).scalar_one_or_none()
                    if existing and existing.id != user_id:
                        raise ValueError("Email already in use")
                    entry.email = email
            if payload.name and payload.name.strip():
                entry.name = payload.name.strip()
            if payload.profile_image:
                entry.profile_image = payload.profile_image
            if payload.bio is not None:
                entry.bio = payload.bio
            if payload.social_links is not None:
                entry.social_links = payload.social_links.model_dump(exclude_none=True)
            if payload.password:
                entry.password_hash = hash_password(payload.password)
            entry.updated_at = now
            session.flush()
            return self._to_response(entry)

    def _to_response(self, entry: UserEntry) -> UserResponse:
        return UserResponse(
            id=entry.id,
            name=entry.name,
            email=entry.email,
            is_admin=bool(entry.is_admin),
            is_artist=bool(entry.is_artist),
            bio=entry.bio,
            profile_image=entry.profile_image,
            phone=entry.phone,
            address=entry.address,
            country=entry.country,
            social_links=SocialLinks(**entry.social_links) if entry.social_links else None,
            created_at=entry.created_at,
        )


user_store = UserStore()
