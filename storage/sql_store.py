"""SQLite SQLAlchemy store wrapper shared by the pattern and version stores."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.errors import StorageError
from storage.schemas import Base


class SQLStore:
    """Session management plus a process-wide write lock.

    Writers that need read-modify-write atomicity hold ``write_lock`` for the
    whole transaction; SQLite then sees one writer at a time.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path
        if db_path is None:
            self.engine = create_engine(
                "sqlite+pysqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_engine(
                f"sqlite+pysqlite:///{db_path}",
                connect_args={"check_same_thread": False},
            )
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.write_lock = threading.RLock()

    def create_all(self) -> None:
        """Create all schema tables if missing."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager that commits on success and rolls back on error."""
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except SQLAlchemyError as exc:
            sess.rollback()
            raise StorageError(f"Database operation failed: {exc}") from exc
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Serialized read-modify-write session."""
        with self.write_lock, self.session() as sess:
            yield sess
