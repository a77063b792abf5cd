# Overview: Ledger store handle; owns the session and the unit-of-work primitive.

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceFailure
"""
Tillbook Ledger Store Invariants (authoritative)

- One store handle per application, created in create_app() and closed at shutdown.
- Services never commit on their own; every multi-write operation runs inside
  unit_of_work(), which commits on normal exit and rolls back on any exception.
- Domain errors raised inside a unit of work propagate unchanged after rollback.
- SQLAlchemy errors are rolled back and re-raised as PersistenceFailure.
"""

_DEPTH_KEY = "tillbook.uow_depth"


class LedgerStore:
    def __init__(self, db: SQLAlchemy):
        self._db = db
        self._closed = False

    @property
    def session(self) -> Session:
        """The session bound to the current thread / app context."""
        return self._db.session()

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def unit_of_work(self) -> Iterator[Session]:
        """
        Run a group of writes atomically.

        Usage:
            with store.unit_of_work() as session:
                session.add(...)

        A nested call joins the outer unit through a SAVEPOINT, so an inner
        failure discards only the inner writes.
        """
        session = self.session
        depth = session.info.get(_DEPTH_KEY, 0)

        if depth > 0:
            nested = session.begin_nested()
            session.info[_DEPTH_KEY] = depth + 1
            try:
                yield session
                nested.commit()
            except SQLAlchemyError as exc:
                nested.rollback()
                raise PersistenceFailure("Ledger write failed", details={"cause": str(exc)}) from exc
            except Exception:
                nested.rollback()
                raise
            finally:
                session.info[_DEPTH_KEY] = depth
            return

        session.info[_DEPTH_KEY] = 1
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceFailure("Ledger write failed", details={"cause": str(exc)}) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.info[_DEPTH_KEY] = 0

    def create_schema(self) -> None:
        self._db.create_all()

    def close(self) -> None:
        """Release pooled connections; called once at process shutdown."""
        if self._closed:
            return
        self._db.session.remove()
        self._db.engine.dispose()
        self._closed = True
