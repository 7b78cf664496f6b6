from typing import Optional
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine,async_sessionmaker,AsyncSession
from sqlmodel import SQLModel
from vexa.db.utils import _normalize_db_url
import vexa.schema.full_schema  # noqa: F401  registers tables on SQLModel.metadata


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    # pysqlite defers BEGIN until the first write and ignores FOR UPDATE.
    # Take the write lock when the transaction starts so every transaction runs one at a time.
    @event.listens_for(engine.sync_engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Explicit data-access handle. Opened in the app lifespan, closed on shutdown and
    handed to whoever needs a session (routes via get_session, tests directly)."""

    def __init__(self, url: str, echo: bool = False):
        self.url = _normalize_db_url(url)
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    async def connect(self):
        if self.engine is not None:
            return
        self.engine = create_async_engine(self.url, echo=self.echo)
        if self.is_sqlite:
            _serialize_sqlite_writers(self.engine)
        self.session_factory = async_sessionmaker(bind=self.engine, class_=AsyncSession, expire_on_commit=False)

    async def create_all(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def disconnect(self):
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self.session_factory = None

    def session(self) -> AsyncSession:
        if self.session_factory is None:
            raise RuntimeError("Database is not connected")
        return self.session_factory()
