import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, DateTime, Boolean, Float, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from chatvault.database import Base


class Message(Base):
    """
    A chat message.

    parent_id links a reply to the message it answers; quota_id links a message to
    the one it quotes. Both point into this same table.
    """
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("client_id", "user_id", name="messages_client_id_user_id_unique"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    role: Mapped[str] = mapped_column(String(20))  # "user", "assistant", "system", "tool"
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reasoning: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    search: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    model: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    provider: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    error: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    tools: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    trace_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    observation_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    session_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("sessions.id"), nullable=True)
    topic_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("topics.id"), nullable=True)
    thread_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("threads.id"), nullable=True)
    parent_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("messages.id"), nullable=True)
    quota_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("messages.id"), nullable=True)
    agent_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("agents.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    accessed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class MessagePlugin(Base):
    """Tool-call payload of a message; shares the message's id."""
    __tablename__ = "message_plugins"

    id: Mapped[str] = mapped_column(String(36), ForeignKey("messages.id"), primary_key=True)
    tool_call_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), default="default")
    api_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    arguments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    identifier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    state: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))


class MessageTranslate(Base):
    """Translation of a message; shares the message's id."""
    __tablename__ = "message_translates"

    id: Mapped[str] = mapped_column(String(36), ForeignKey("messages.id"), primary_key=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    from_language: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    to_language: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))


class MessageTTS(Base):
    """Synthesised speech for a message; shares the message's id."""
    __tablename__ = "message_tts"

    id: Mapped[str] = mapped_column(String(36), ForeignKey("messages.id"), primary_key=True)
    content_md5: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("files.id"), nullable=True)
    voice: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))


class MessageChunk(Base):
    """Retrieval chunk attached to a message; identity is (message_id, chunk_id)."""
    __tablename__ = "message_chunks"

    message_id: Mapped[str] = mapped_column(String(36), ForeignKey("messages.id"), primary_key=True)
    chunk_id: Mapped[str] = mapped_column(String(36), ForeignKey("chunks.id"), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))


class MessageQuery(Base):
    """Rewritten retrieval query issued for a message."""
    __tablename__ = "message_queries"
    __table_args__ = (
        UniqueConstraint("client_id", "user_id", name="message_queries_client_id_user_id_unique"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    message_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("messages.id"), nullable=True)
    rewrite_query: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_query: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    embeddings_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("embeddings.id"), nullable=True)


class MessageQueryChunk(Base):
    """Chunk matched by a message query; identity is (message_id, query_id, chunk_id)."""
    __tablename__ = "message_query_chunks"

    message_id: Mapped[str] = mapped_column(String(36), ForeignKey("messages.id"), primary_key=True)
    query_id: Mapped[str] = mapped_column(String(36), ForeignKey("message_queries.id"), primary_key=True)
    chunk_id: Mapped[str] = mapped_column(String(36), ForeignKey("chunks.id"), primary_key=True)
    similarity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
