"""
Table-oriented data access used by the settlement and rating services.

Mirrors the backend-as-a-service style the mobile app talks to
(select / insert / update / delete by table name and equality filters),
implemented on a SQLAlchemy session. Rows go in and come out as plain dicts.

Unique constraint violations are raised as UniquenessConflict; every other
database error is passed through untouched after rolling the session back.
"""
import enum
import logging
import sqlite3
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Date, DateTime
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gobuddy.core.exceptions import UniquenessConflict
from gobuddy.models.commissions import Commission, Invoice
from gobuddy.models.errands import Errand
from gobuddy.models.ratings import RateAndFeedback
from gobuddy.models.settlements import Settlement
from gobuddy.models.users import User

logger = logging.getLogger(__name__)

TABLES = {
    "commission": Commission,
    "invoices": Invoice,
    "errands": Errand,
    "rate_and_feedback": RateAndFeedback,
    "settlements": Settlement,
    "users": User,
}


UNIQUE_VIOLATION_SQLSTATE = "23505"
SQLITE_UNIQUE_PREFIX = "UNIQUE constraint failed"


def _is_unique_violation(error: IntegrityError) -> bool:
    """Decide from the driver error itself, never from constraint names."""
    orig = getattr(error, "orig", None)
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate is not None:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE
    if isinstance(orig, sqlite3.IntegrityError):
        return str(orig).startswith(SQLITE_UNIQUE_PREFIX)
    return False


def row_to_dict(obj: Any) -> Dict[str, Any]:
    row = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.name)
        if isinstance(value, enum.Enum):
            value = value.value
        row[column.name] = value
    return row


class DataService:
    """Generic select/insert/update/delete over the registered tables."""

    def __init__(self, db: Session):
        self.db = db

    def _model(self, table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}")

    def _coerce(self, model, values: Dict[str, Any]) -> Dict[str, Any]:
        """Accept ISO strings for date/datetime columns."""
        coerced = {}
        for name, value in values.items():
            column = model.__table__.columns.get(name)
            if column is None:
                raise ValueError(f"Unknown column '{name}' on table '{model.__tablename__}'")
            if isinstance(value, str):
                if isinstance(column.type, DateTime):
                    value = datetime.fromisoformat(value.replace("Z", "+00:00"))
                elif isinstance(column.type, Date):
                    value = date.fromisoformat(value[:10])
            coerced[name] = value
        return coerced

    def _query(self, table: str, filters: Optional[Dict[str, Any]]):
        model = self._model(table)
        query = self.db.query(model)
        for name, value in self._coerce(model, filters or {}).items():
            column = getattr(model, name)
            if isinstance(value, (list, tuple, set, frozenset)):
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)
        return query

    def select(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return [row_to_dict(obj) for obj in self._query(table, filters).all()]

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(table)
        obj = model(**self._coerce(model, row))
        self.db.add(obj)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if _is_unique_violation(e):
                raise UniquenessConflict(table, row, e) from e
            raise
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(obj)
        return row_to_dict(obj)

    def update(self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Refusing to update without a filter")
        model = self._model(table)
        values = self._coerce(model, patch)
        objects = self._query(table, filters).all()
        for obj in objects:
            for name, value in values.items():
                setattr(obj, name, value)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if _is_unique_violation(e):
                raise UniquenessConflict(table, patch, e) from e
            raise
        except Exception:
            self.db.rollback()
            raise
        for obj in objects:
            self.db.refresh(obj)
        return [row_to_dict(obj) for obj in objects]

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        if not filters:
            raise ValueError("Refusing to delete without a filter")
        objects = self._query(table, filters).all()
        for obj in objects:
            self.db.delete(obj)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return len(objects)
