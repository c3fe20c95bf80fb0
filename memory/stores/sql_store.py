"""SQLite index store shared by memory documents, tags and vectors."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from core.errors import DependencyUnavailableError
from memory.schemas import Base


class SQLStore:
    """Owns the engine and hands out short-lived sessions, one per store operation."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # The update re-embed thread borrows pooled connections.
        self.engine = create_engine(
            f"sqlite+pysqlite:///{self.db_path}",
            future=True,
            connect_args={"check_same_thread": False},
        )
        self._session_factory = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)

    def create_all(self) -> None:
        """Create all schema tables if missing."""
        Base.metadata.create_all(self.engine)

    def rebuild_indexes(self) -> int:
        """Drop and recreate every secondary index, keeping rows. Returns the index count."""
        self.create_all()
        count = 0
        with self.engine.begin() as conn:
            for table in Base.metadata.sorted_tables:
                for index in table.indexes:
                    index.drop(conn, checkfirst=True)
                    index.create(conn)
                    count += 1
        return count

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager that commits on success and rolls back on error."""
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except OperationalError as exc:
            sess.rollback()
            raise DependencyUnavailableError(f"index store error: {exc.orig}") from exc
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()
