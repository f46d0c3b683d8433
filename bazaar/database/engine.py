"""
bazaar.database.engine — Connection Gateway & Transaction Scope
================================================================

**Why this file exists:**
Every domain operation needs exactly one of two things from the database:
a single read, or a bounded multi-statement transaction that either commits
as a whole or leaves no trace.  :class:`DataContext` owns the pooled engine
and hands out both, so no store ever touches a connection directly.

There is no module-level engine.  A context is constructed explicitly,
opened, passed into each operation, and closed at shutdown; tests build
their own isolated instance against in-memory SQLite.

Usage::

    from bazaar.database.engine import DataContext

    ctx = DataContext.from_env(cfg).open()   # reads DATABASE_URL
    ctx.create_schema()                      # CREATE TABLE IF NOT EXISTS …

    with ctx.transaction() as session:
        session.add(...)
        # commit happens on block exit, rollback on any exception

    # Inside async code:
    user = await ctx.run(get_user_by_id, ctx, "u-1")
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from bazaar.constants import DEFAULT_ACCEPTANCE_BONUS, DEFAULT_NOTIFICATION_LIMIT
from bazaar.database.models import Base
from bazaar.errors import (
    BazaarError,
    OperationTimeoutError,
    ResourceExhaustedError,
    TransactionAbortedError,
)

if TYPE_CHECKING:
    from bazaar.config import BazaarConfig

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or url.startswith("sqlite:///:memory:?")


def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ---------------------------------------------------------------------------
# DataContext
# ---------------------------------------------------------------------------
class DataContext:
    """Explicitly owned data-access context: one engine, one bounded pool.

    Pool policy is *bounded wait then fail*: at most ``pool_size +
    max_overflow`` connections are open; a caller that cannot check one out
    within ``pool_timeout`` seconds gets :class:`ResourceExhaustedError`.

    Every transaction carries a deadline of ``operation_timeout`` seconds.
    A body that finishes late is rolled back and reported as
    :class:`OperationTimeoutError`; nothing commits past the deadline.
    The deadline is checked at commit time only: a body blocked inside a
    statement is not interrupted (PostgreSQL additionally gets
    ``statement_timeout``), and reads through :meth:`session` have no
    deadline.

    ``notification_limit`` and ``acceptance_bonus_points`` are the domain
    defaults the stores fall back on when a caller does not pass its own.
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: float = 10.0,
        pool_recycle: int = 3600,
        operation_timeout: float = 30.0,
        notification_limit: int = DEFAULT_NOTIFICATION_LIMIT,
        acceptance_bonus_points: int = DEFAULT_ACCEPTANCE_BONUS,
        echo: bool = False,
    ) -> None:
        self.url = url
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_timeout = pool_timeout
        self.pool_recycle = pool_recycle
        self.operation_timeout = operation_timeout
        self.notification_limit = notification_limit
        self.acceptance_bonus_points = acceptance_bonus_points
        self.echo = echo
        self._engine: Engine | None = None

    @classmethod
    def from_config(cls, url: str, cfg: BazaarConfig) -> DataContext:
        return cls(
            url,
            pool_size=cfg.pool_size,
            max_overflow=cfg.max_overflow,
            pool_timeout=cfg.pool_timeout,
            pool_recycle=cfg.pool_recycle,
            operation_timeout=cfg.operation_timeout,
            notification_limit=cfg.notification_limit,
            acceptance_bonus_points=cfg.acceptance_bonus_points,
        )

    @classmethod
    def from_env(cls, cfg: BazaarConfig) -> DataContext:
        """Build a context from the ``DATABASE_URL`` env var.

        Raises
        ------
        RuntimeError
            If ``DATABASE_URL`` is not set.
        """
        url = os.getenv("DATABASE_URL")
        if not url:
            raise RuntimeError(
                "DATABASE_URL is not set.  "
                "Copy .env.example → .env and set a valid database URL."
            )
        return cls.from_config(url, cfg)

    # -- lifecycle ----------------------------------------------------------
    def open(self) -> DataContext:
        """Create the engine and its pool.  Idempotent."""
        if self._engine is not None:
            return self

        kwargs: dict[str, Any] = {"echo": self.echo}
        if _is_memory_sqlite(self.url):
            # One shared connection so every session sees the same database
            kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=self.pool_timeout,
                pool_recycle=self.pool_recycle,
                pool_pre_ping=True,
            )
            if self.url.startswith("sqlite"):
                kwargs["connect_args"] = {"check_same_thread": False}

        engine = create_engine(self.url, **kwargs)
        if engine.dialect.name == "sqlite":
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)

        self._engine = engine
        logger.info("Database engine opened → %s", engine.url.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        """Dispose of the pool.  Safe to call twice."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info("Database engine closed.")

    def __enter__(self) -> DataContext:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("DataContext is not open. Call open() first.")
        return self._engine

    # -- schema -------------------------------------------------------------
    def create_schema(self) -> None:
        """Create all tables defined in :mod:`bazaar.database.models`.

        .. note::

            In production the schema is managed by Alembic (``alembic upgrade
            head``).  ``create_all`` is retained for dev/test environments.
        """
        Base.metadata.create_all(self.engine)
        logger.info("Database tables verified / created.")

    def drop_schema(self) -> None:
        Base.metadata.drop_all(self.engine)

    # -- sessions -----------------------------------------------------------
    def _checkout(self, session: Session) -> None:
        """Bind *session* to a pooled connection now, not lazily."""
        try:
            session.connection()
        except PoolTimeoutError as exc:
            session.close()
            raise ResourceExhaustedError(
                f"No connection available within {self.pool_timeout}s "
                f"(pool_size={self.pool_size}, max_overflow={self.max_overflow})"
            ) from exc

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a :class:`Session` that commits on success and rolls back
        on exception.

        Usage::

            with ctx.transaction() as session:
                session.add(Notification(...))
                # commit happens automatically on block exit

        SQLAlchemy failures surface as :class:`TransactionAbortedError`;
        domain errors raised by the body pass through unchanged.  In both
        cases the rollback has already happened.
        """
        started = time.monotonic()
        session = Session(self.engine, expire_on_commit=False)
        self._checkout(session)
        try:
            if self.engine.dialect.name == "postgresql":
                timeout_ms = int(self.operation_timeout * 1000)
                session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
            yield session
            elapsed = time.monotonic() - started
            if elapsed > self.operation_timeout:
                raise OperationTimeoutError(
                    f"Transaction took {elapsed:.3f}s "
                    f"(limit {self.operation_timeout}s); rolled back"
                )
            session.commit()
        except BazaarError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            # 57014 = query_canceled, raised by statement_timeout
            if getattr(getattr(exc, "orig", None), "sqlstate", None) == "57014":
                raise OperationTimeoutError(
                    f"Statement cancelled after {self.operation_timeout}s; rolled back"
                ) from exc
            logger.warning("Transaction rolled back: %s", exc)
            raise TransactionAbortedError(str(exc)) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a read-only :class:`Session`.  Never commits."""
        session = Session(self.engine, expire_on_commit=False)
        self._checkout(session)
        try:
            yield session
        finally:
            session.close()

    def execute(self, statement: Any, params: dict | None = None) -> list:
        """Run one statement outside an explicit transaction.

        Returns the buffered result rows (empty for statements that return
        none).  Plain SQL strings are wrapped in :func:`sqlalchemy.text`.
        """
        if isinstance(statement, str):
            statement = text(statement)
        with self.transaction() as session:
            result = session.execute(statement, params or {})
            return list(result.all()) if result.returns_rows else []

    # -- async bridge -------------------------------------------------------
    async def run(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """Run a **synchronous** store operation on a background thread.

        Under the hood it calls :func:`asyncio.to_thread`, so an async
        request handler never blocks its event loop on database I/O.
        """
        return await asyncio.to_thread(func, *args, **kwargs)
