from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from decision_maker.core.config import get_settings

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def configure_engine(url: str, **engine_kwargs) -> async_sessionmaker[AsyncSession]:
    """Create the engine and session factory for ``url``, replacing any previous one."""
    global _engine, _sessionmaker

    if url.startswith("postgresql"):
        engine_kwargs.setdefault("pool_size", 20)
        engine_kwargs.setdefault("max_overflow", 10)
        engine_kwargs.setdefault("pool_recycle", 3600)  # Recycle connections after 1 hour
    engine_kwargs.setdefault("pool_pre_ping", True)
    engine_kwargs.setdefault("echo", False)

    _engine = create_async_engine(url, **engine_kwargs)
    _sessionmaker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _sessionmaker


def get_sessionmaker() -> async_sessionmaker[AsyncSession] | None:
    """
    Session factory for the document store, or None when no database is configured.

    The engine is created lazily so the service runs without a database.
    """
    if _sessionmaker is None:
        settings = get_settings()
        if not settings.database_url_async:
            return None
        configure_engine(settings.database_url_async)
    return _sessionmaker


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
