from chatvault.models.user import User, UserSetting, UserInstalledPlugin
from chatvault.models.provider import AiProvider, AiModel
from chatvault.models.session import SessionGroup, ChatSession, AgentToSession
from chatvault.models.agent import Agent
from chatvault.models.topic import Topic, Thread
from chatvault.models.file import File, Chunk, Embedding
from chatvault.models.message import (
    Message,
    MessagePlugin,
    MessageTranslate,
    MessageTTS,
    MessageChunk,
    MessageQuery,
    MessageQueryChunk,
)

__all__ = [
    "User",
    "UserSetting",
    "UserInstalledPlugin",
    "AiProvider",
    "AiModel",
    "SessionGroup",
    "ChatSession",
    "AgentToSession",
    "Agent",
    "Topic",
    "Thread",
    "File",
    "Chunk",
    "Embedding",
    "Message",
    "MessagePlugin",
    "MessageTranslate",
    "MessageTTS",
    "MessageChunk",
    "MessageQuery",
    "MessageQueryChunk",
]
