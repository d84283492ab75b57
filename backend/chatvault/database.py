from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from chatvault.config import settings


class Base(DeclarativeBase):
    pass


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    Make SAVEPOINT usable on pysqlite/aiosqlite connections.

    The sqlite drivers emit their own BEGIN lazily and commit before DDL, which
    breaks nested transactions. The importer relies on savepoints to contain a
    failed insert batch, so we take over transaction demarcation here.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_autobegin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_async_engine(
    settings.chatvault_database_url,
    echo=False,  # SQL logging disabled; use logging config if needed
)

if settings.is_sqlite:
    enable_sqlite_savepoints(engine)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_db():
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    # Import models so every table is registered on Base.metadata
    import chatvault.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
