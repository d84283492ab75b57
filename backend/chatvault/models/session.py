import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, DateTime, Integer, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from chatvault.database import Base


def _random_slug() -> str:
    return uuid.uuid4().hex[:12]


class SessionGroup(Base):
    """User-defined folder for chat sessions."""
    __tablename__ = "session_groups"
    __table_args__ = (
        UniqueConstraint("client_id", "user_id", name="session_groups_client_id_user_id_unique"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(Text)
    sort: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    accessed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ChatSession(Base):
    """
    A chat session: one agent (or a group of agents) and its topics.

    Slugs are unique per user, as are client ids.
    """
    __tablename__ = "sessions"
    __table_args__ = (
        UniqueConstraint("slug", "user_id", name="sessions_slug_user_id_unique"),
        UniqueConstraint("client_id", "user_id", name="sessions_client_id_user_id_unique"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    slug: Mapped[str] = mapped_column(String(100), default=_random_slug)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    background_color: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), default="agent")  # "agent" or "group"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    group_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("session_groups.id"), nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    accessed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class AgentToSession(Base):
    """Join table linking agents to sessions; identity is (agent_id, session_id)."""
    __tablename__ = "agents_to_sessions"

    agent_id: Mapped[str] = mapped_column(String(36), ForeignKey("agents.id"), primary_key=True)
    session_id: Mapped[str] = mapped_column(String(36), ForeignKey("sessions.id"), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
