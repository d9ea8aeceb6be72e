from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from ceycanvas.database import Base


class UserEntry(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    is_artist = Column(Boolean, nullable=False, default=False)
    bio = Column(Text, nullable=True)
    profile_image = Column(String(512), nullable=True)
    social_links = Column(JSON, nullable=True)
    phone = Column(String(32), nullable=True)
    address = Column(String(255), nullable=True)
    country = Column(String(100), nullable=True)
    terms_accepted = Column(Boolean, nullable=False, default=False)
    terms_version = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
