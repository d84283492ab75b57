from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, DateTime, Integer, Boolean, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from chatvault.database import Base


class AiProvider(Base):
    """
    A model provider configuration (e.g. "openai", "ollama").

    Provider ids are chosen by the client and kept on import.
    """
    __tablename__ = "ai_providers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    sort: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    enabled: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    fetch_on_client: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    check_model: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    logo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    key_vaults: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    settings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    config: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    accessed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class AiModel(Base):
    __tablename__ = "ai_models"

    id: Mapped[str] = mapped_column(String(150), primary_key=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    organization: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    enabled: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    provider_id: Mapped[Optional[str]] = mapped_column(String(64), ForeignKey("ai_providers.id"), nullable=True)
    type: Mapped[str] = mapped_column(String(20), default="chat")
    sort: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    pricing: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    parameters: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    config: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    abilities: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    context_window_tokens: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    released_at: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    accessed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
