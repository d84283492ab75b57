"""
Pytest configuration and fixtures for Chatvault tests.
"""
import pytest
import uuid
from typing import AsyncGenerator, Callable, Iterator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from chatvault.database import Base, enable_sqlite_savepoints
from chatvault.config import Settings
from chatvault.importer import ConflictLog, DataImportService, IdentifierMap, IMPORT_PLANS, TableImporter
from chatvault.models import User


# Test database URL - in-memory SQLite
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Create a test database engine with working savepoints."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_settings():
    """Create test settings pointing at the in-memory database."""
    return Settings(
        chatvault_database_url=TEST_DATABASE_URL,
        debug=False,
        import_batch_size=2,
        import_suffix_length=6,
    )


async def _create_user(session_maker, username: str) -> str:
    user_id = str(uuid.uuid4())
    async with session_maker() as session:
        session.add(User(id=user_id, username=username))
        await session.commit()
    return user_id


@pytest.fixture
async def owner_id(session_maker) -> str:
    """Id of a committed user that imports run on behalf of."""
    return await _create_user(session_maker, "owner")


@pytest.fixture
async def other_owner_id(session_maker) -> str:
    return await _create_user(session_maker, "someone-else")


@pytest.fixture
def suffix_source() -> Callable[[], str]:
    """Deterministic suffix generator: s1, s2, s3, ..."""
    counter: Iterator[int] = iter(range(1, 10_000))
    return lambda: f"s{next(counter)}"


@pytest.fixture
def composite_tables():
    return [plan.table for plan in IMPORT_PLANS if plan.is_composite_key]


@pytest.fixture
def id_map(composite_tables) -> IdentifierMap:
    return IdentifierMap(composite_tables)


@pytest.fixture
def conflict_log() -> ConflictLog:
    return ConflictLog()


@pytest.fixture
def make_importer(id_map, conflict_log, owner_id, suffix_source):
    """Build a TableImporter bound to a session, sharing the test's map and log."""
    def _make(session: AsyncSession, batch_size: int = 100, owner: str = None) -> TableImporter:
        return TableImporter(
            session,
            owner or owner_id,
            id_map,
            conflict_log,
            batch_size=batch_size,
            suffix_source=suffix_source,
        )
    return _make


@pytest.fixture
def import_service(session_maker, suffix_source) -> DataImportService:
    return DataImportService(session_maker, suffix_source=suffix_source)


@pytest.fixture
def sample_snapshot():
    """A small connected snapshot: one group, agent, session, topic, thread and two messages."""
    return {
        "session_groups": [
            {"id": "grp-1", "client_id": "c-grp-1", "name": "Work", "sort": 1},
        ],
        "agents": [
            {"id": "agt-1", "client_id": "c-agt-1", "slug": "helper", "title": "Helper"},
        ],
        "sessions": [
            {
                "id": "ses-1",
                "client_id": "c-ses-1",
                "slug": "inbox",
                "title": "Inbox",
                "group_id": "grp-1",
                "created_at": "2024-03-01T10:00:00Z",
            },
        ],
        "agents_to_sessions": [
            {"agent_id": "agt-1", "session_id": "ses-1"},
        ],
        "topics": [
            {"id": "top-1", "client_id": "c-top-1", "title": "Greetings", "session_id": "ses-1"},
        ],
        "threads": [
            {"id": "thr-1", "client_id": "c-thr-1", "topic_id": "top-1", "parent_thread_id": "thr-0"},
        ],
        "messages": [
            {
                "id": "msg-1",
                "client_id": "c-msg-1",
                "role": "user",
                "content": "Hello",
                "session_id": "ses-1",
                "topic_id": "top-1",
                "agent_id": "agt-1",
            },
            {
                "id": "msg-2",
                "client_id": "c-msg-2",
                "role": "assistant",
                "content": "Hi!",
                "session_id": "ses-1",
                "topic_id": "top-1",
                "parent_id": "msg-1",
                "created_at": 1709287200000,
            },
        ],
        "message_translates": [
            {"id": "msg-1", "content": "Bonjour", "from_language": "en", "to_language": "fr"},
        ],
    }
