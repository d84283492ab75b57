import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, JSON, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column
from chatvault.database import Base


class User(Base):
    """
    Tenant that owns every other row in the store.

    Users are never imported; an import always runs on behalf of an existing user.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=datetime.utcnow, nullable=True)


class UserSetting(Base):
    """Per-user singleton settings row. Its id is always the owning user's id."""
    __tablename__ = "user_settings"

    id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), primary_key=True)
    tts: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    hotkey: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    key_vaults: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    general: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    language_model: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    system_agent: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    default_agent: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    tool: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


class UserInstalledPlugin(Base):
    """A plugin installed by a user; identity is (user_id, identifier)."""
    __tablename__ = "user_installed_plugins"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), primary_key=True)
    identifier: Mapped[str] = mapped_column(String(255), primary_key=True)
    type: Mapped[str] = mapped_column(String(20), default="plugin")
    manifest: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    settings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    custom_params: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    accessed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
