import uuid
from datetime import datetime
from typing import Optional, List
from sqlalchemy import String, Text, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from chatvault.database import Base


class Agent(Base):
    """
    An assistant persona: system role, model choice and presentation.

    The slug is optional, but when set it must be unique for the owning user.
    """
    __tablename__ = "agents"
    __table_args__ = (
        UniqueConstraint("slug", "user_id", name="agents_slug_user_id_unique"),
        UniqueConstraint("client_id", "user_id", name="agents_client_id_user_id_unique"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    slug: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    background_color: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    plugins: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    chat_config: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    few_shots: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    model: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    provider: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    system_role: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tts: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    opening_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    opening_questions: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    accessed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
