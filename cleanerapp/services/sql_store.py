"""RelationalStore backed directly by a SQL database through SQLAlchemy."""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict

from sqlalchemy import Table, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cleanerapp.database import Base, SessionLocal
from cleanerapp.errors import NotFound, StoreError
from cleanerapp.services.store import RelationalStore

logger = logging.getLogger(__name__)


class SqlStore(RelationalStore):
    """Same primitives as the REST store, executed through SQLAlchemy.

    Every primitive runs on its own short-lived session; no connection is
    held between calls.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        """Initialize with a session factory."""
        import cleanerapp.models  # noqa: F401  (registers tables on Base)

        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def _table(self, name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise StoreError(f'relation "{name}" does not exist')
        return table

    def _columns(self, table: Table, columns: str):
        if columns.strip() == "*":
            return [table]
        try:
            return [table.c[name.strip()] for name in columns.split(",")]
        except KeyError as e:
            raise StoreError(f"column {e} does not exist") from e

    @staticmethod
    def _row(row) -> Dict[str, Any]:
        return dict(row._mapping)

    @staticmethod
    def _execute(db: Session, statement):
        try:
            return db.execute(statement)
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(str(e.orig if getattr(e, "orig", None) else e)) from e

    @staticmethod
    def _commit(db: Session):
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(str(e.orig if getattr(e, "orig", None) else e)) from e

    def select(self, table, eq=None, in_=None, order=(), columns="*"):
        t = self._table(table)
        stmt = select(*self._columns(t, columns))
        for column, value in (eq or {}).items():
            stmt = stmt.where(t.c[column] == value)
        for column, values in (in_ or {}).items():
            stmt = stmt.where(t.c[column].in_(list(values)))
        for column, ascending in order:
            stmt = stmt.order_by(t.c[column].asc() if ascending else t.c[column].desc())
        with self._session() as db:
            return [self._row(r) for r in self._execute(db, stmt)]

    def select_single(self, table, eq, columns="*"):
        rows = self.select(table, eq=eq, columns=columns)
        if len(rows) != 1:
            raise NotFound(f"No matching row in {table}")
        return rows[0]

    def insert(self, table, values):
        t = self._table(table)
        values = dict(values)
        # Python-side column defaults (ids, timestamps) are applied by SQLAlchemy
        with self._session() as db:
            result = self._execute(db, insert(t).values(**values))
            row_id = values.get("id") or result.inserted_primary_key[0]
            self._commit(db)
        return self.select_single(table, eq={"id": row_id})

    def update(self, table, row_id, values):
        t = self._table(table)
        with self._session() as db:
            result = self._execute(db, update(t).where(t.c.id == row_id).values(**values))
            if result.rowcount == 0:
                db.rollback()
                raise NotFound(f"No matching row in {table}")
            self._commit(db)
        return self.select_single(table, eq={"id": row_id})
