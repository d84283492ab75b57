"""
Table registry for the importer.

Maps the closed set of importable tables to their SQLAlchemy models and answers
the column questions the import pipeline asks (does this table carry an owner,
a client id, which columns hold timestamps, ...).
"""

import enum
from functools import lru_cache
from typing import Dict, FrozenSet, List, Type

from sqlalchemy import DateTime, inspect
from sqlalchemy.orm import InstrumentedAttribute

from chatvault.database import Base
from chatvault.models import (
    Agent,
    AgentToSession,
    AiModel,
    AiProvider,
    ChatSession,
    Chunk,
    Embedding,
    File,
    Message,
    MessageChunk,
    MessagePlugin,
    MessageQuery,
    MessageQueryChunk,
    MessageTranslate,
    MessageTTS,
    SessionGroup,
    Thread,
    Topic,
    UserInstalledPlugin,
    UserSetting,
)

ID_COLUMN = "id"
OWNER_COLUMN = "user_id"
CLIENT_ID_COLUMN = "client_id"


class TableName(str, enum.Enum):
    USER_SETTINGS = "user_settings"
    USER_INSTALLED_PLUGINS = "user_installed_plugins"
    AI_PROVIDERS = "ai_providers"
    AI_MODELS = "ai_models"
    SESSION_GROUPS = "session_groups"
    AGENTS = "agents"
    SESSIONS = "sessions"
    TOPICS = "topics"
    AGENTS_TO_SESSIONS = "agents_to_sessions"
    FILES = "files"
    CHUNKS = "chunks"
    EMBEDDINGS = "embeddings"
    THREADS = "threads"
    MESSAGES = "messages"
    MESSAGE_PLUGINS = "message_plugins"
    MESSAGE_CHUNKS = "message_chunks"
    MESSAGE_QUERIES = "message_queries"
    MESSAGE_QUERY_CHUNKS = "message_query_chunks"
    MESSAGE_TRANSLATES = "message_translates"
    MESSAGE_TTS = "message_tts"


TABLE_MODELS: Dict[TableName, Type[Base]] = {
    TableName.USER_SETTINGS: UserSetting,
    TableName.USER_INSTALLED_PLUGINS: UserInstalledPlugin,
    TableName.AI_PROVIDERS: AiProvider,
    TableName.AI_MODELS: AiModel,
    TableName.SESSION_GROUPS: SessionGroup,
    TableName.AGENTS: Agent,
    TableName.SESSIONS: ChatSession,
    TableName.TOPICS: Topic,
    TableName.AGENTS_TO_SESSIONS: AgentToSession,
    TableName.FILES: File,
    TableName.CHUNKS: Chunk,
    TableName.EMBEDDINGS: Embedding,
    TableName.THREADS: Thread,
    TableName.MESSAGES: Message,
    TableName.MESSAGE_PLUGINS: MessagePlugin,
    TableName.MESSAGE_CHUNKS: MessageChunk,
    TableName.MESSAGE_QUERIES: MessageQuery,
    TableName.MESSAGE_QUERY_CHUNKS: MessageQueryChunk,
    TableName.MESSAGE_TRANSLATES: MessageTranslate,
    TableName.MESSAGE_TTS: MessageTTS,
}


def get_model(table: TableName) -> Type[Base]:
    return TABLE_MODELS[table]


def get_column(table: TableName, name: str) -> InstrumentedAttribute:
    """Typed column handle for building predicates, e.g. ``get_column(t, "slug") == value``."""
    return getattr(get_model(table), name)


@lru_cache(maxsize=None)
def column_names(table: TableName) -> FrozenSet[str]:
    return frozenset(inspect(get_model(table)).columns.keys())


@lru_cache(maxsize=None)
def datetime_columns(table: TableName) -> FrozenSet[str]:
    columns = inspect(get_model(table)).columns
    return frozenset(key for key, column in columns.items() if isinstance(column.type, DateTime))


@lru_cache(maxsize=None)
def primary_key_columns(table: TableName) -> FrozenSet[str]:
    return frozenset(column.key for column in inspect(get_model(table)).primary_key)


def has_column(table: TableName, name: str) -> bool:
    return name in column_names(table)


def supports_owner_lookup(table: TableName) -> bool:
    """Whether rows can be matched by (owner, client id)."""
    return has_column(table, OWNER_COLUMN) and has_column(table, CLIENT_ID_COLUMN)


def identity_columns(table: TableName) -> List[InstrumentedAttribute]:
    """The id and client id handles a table has, in that order."""
    return [
        get_column(table, name)
        for name in (ID_COLUMN, CLIENT_ID_COLUMN)
        if has_column(table, name)
    ]
