"""
Declarative base, async engine and session factory.

Services never create their own engine: they receive an
``async_sessionmaker`` so tests can hand in an in-memory SQLite one.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from loan_core.core.config import get_settings


class Base(DeclarativeBase):
    pass


def create_engine(database_url: Optional[str] = None, **kwargs) -> AsyncEngine:
    settings = get_settings()
    kwargs.setdefault("echo", settings.database_echo)
    return create_async_engine(database_url or settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    # Imported for side effect: registers every table on Base.metadata
    import loan_core.models.approval  # noqa: F401
    import loan_core.models.audit_log  # noqa: F401
    import loan_core.models.customer  # noqa: F401
    import loan_core.models.loan_application  # noqa: F401
    import loan_core.models.risk_assessment  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
