"""Data store adapter.

Services never touch the ORM directly: they read and write table-shaped
records (plain dicts) through a ``DataStore``. ``SqlAlchemyStore`` is the
production implementation, backed by one SQLAlchemy session per request.

Filters are ``{column: value}`` mappings. ``None`` matches ``IS NULL`` and a
list/tuple/set matches ``IN``. Ordering takes column names; a leading ``-``
sorts descending.

Updates lock the rows they match, so a filter on the current value (e.g.
``{"id": ..., "status": "available"}``) works as a compare-and-swap.

Outside ``transaction()`` every write commits on its own. Inside it, writes
are committed together when the block exits and rolled back together if it
raises.
"""
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from functools import lru_cache
from typing import Any, Callable, Iterable, Optional, Union

from fastapi import Depends
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from safari_ops.database import get_db
from safari_ops.models import (
    Attendance, AuditLog, Booking, Driver, DriverSchedule, Notification, Trip, User, Vehicle,
)

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Filters = Optional[dict[str, Any]]
ChangeCallback = Callable[[dict], None]

TABLES = {
    "users": User,
    "audit_logs": AuditLog,
    "drivers": Driver,
    "vehicles": Vehicle,
    "bookings": Booking,
    "trips": Trip,
    "driver_schedule": DriverSchedule,
    "attendance": Attendance,
    "notifications": Notification,
}

WRITE_EVENTS = ("insert", "update", "delete")


class StoreError(Exception):
    """The backing store rejected an operation."""


class ChangeFeed:
    """In-process change notifications, published after a write commits."""

    def __init__(self):
        self._subscribers: dict[str, list[tuple[str, ChangeCallback]]] = defaultdict(list)

    def subscribe(self, table: str, callback: ChangeCallback, event: str = "*") -> Callable[[], None]:
        if event != "*" and event not in WRITE_EVENTS:
            raise ValueError(f"Unknown change event '{event}'")
        entry = (event, callback)
        self._subscribers[table].append(entry)

        def _unsubscribe():
            if entry in self._subscribers[table]:
                self._subscribers[table].remove(entry)

        return _unsubscribe

    def publish(self, table: str, event: str, rows: list[Record]):
        for wanted, callback in list(self._subscribers.get(table, ())):
            if wanted not in ("*", event):
                continue
            try:
                callback({"table": table, "event": event, "rows": rows})
            except Exception:
                logger.exception("Change subscriber failed for %s %s", event, table)


default_feed = ChangeFeed()


# --- Stored procedures ---

PROCEDURES: dict[str, Callable[..., Any]] = {}


def procedure(name: str):
    """Register a named procedure callable through ``DataStore.call_procedure``."""
    def _register(fn):
        PROCEDURES[name] = fn
        return fn
    return _register


@procedure("mark_notifications_read")
def _mark_notifications_read(db: Session, user_id: str) -> int:
    """Stamp read_at on every unread, undismissed notification of a user."""
    now = datetime.utcnow()
    rows = (
        db.query(Notification)
        .filter(
            Notification.target_user_id == user_id,
            Notification.read_at.is_(None),
            Notification.dismissed_at.is_(None),
        )
        .all()
    )
    for row in rows:
        row.read_at = now
    db.flush()
    return len(rows)


# --- Adapter ---

class DataStore(ABC):
    """Generic table/procedure interface the services are written against."""

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self.feed = feed or default_feed

    @abstractmethod
    def select(self, table: str, filters: Filters = None, order: Iterable[str] = (),
               limit: Optional[int] = None) -> list[Record]:
        ...

    @abstractmethod
    def insert(self, table: str, records: Union[Record, list[Record]]) -> list[Record]:
        ...

    @abstractmethod
    def update(self, table: str, values: Record, filters: Filters) -> list[Record]:
        ...

    @abstractmethod
    def upsert(self, table: str, record: Record, conflict_keys: Iterable[str]) -> Record:
        ...

    @abstractmethod
    def delete(self, table: str, filters: Filters) -> int:
        ...

    @abstractmethod
    def count(self, table: str, filters: Filters = None) -> int:
        ...

    @abstractmethod
    def call_procedure(self, name: str, **args) -> Any:
        ...

    @abstractmethod
    def transaction(self):
        ...

    def select_one(self, table: str, filters: Filters) -> Optional[Record]:
        rows = self.select(table, filters, limit=1)
        return rows[0] if rows else None

    def subscribe(self, table: str, callback: ChangeCallback, event: str = "*") -> Callable[[], None]:
        return self.feed.subscribe(table, callback, event)


@lru_cache(maxsize=None)
def _column_map(model) -> dict[str, str]:
    """Column name -> mapped attribute name (they differ for ``metadata``)."""
    return {attr.columns[0].name: attr.key for attr in inspect(model).mapper.column_attrs}


class SqlAlchemyStore(DataStore):
    def __init__(self, db: Session, feed: Optional[ChangeFeed] = None):
        super().__init__(feed)
        self.db = db
        self._depth = 0
        self._pending_events: list[tuple[str, str, list[Record]]] = []

    # -- helpers --

    def _model(self, table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise StoreError(f"Unknown table '{table}'") from None

    def _attr(self, model, column: str) -> str:
        columns = _column_map(model)
        if column not in columns:
            raise StoreError(f"Unknown column '{column}' on '{model.__tablename__}'")
        return columns[column]

    def _query(self, model, filters: Filters):
        q = self.db.query(model)
        for column, value in (filters or {}).items():
            col = getattr(model, self._attr(model, column))
            if value is None:
                q = q.filter(col.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                q = q.filter(col.in_(list(value)))
            else:
                q = q.filter(col == value)
        return q

    def _to_record(self, model, obj) -> Record:
        return {column: getattr(obj, attr) for column, attr in _column_map(model).items()}

    def _apply(self, model, obj, values: Record):
        for column, value in values.items():
            setattr(obj, self._attr(model, column), value)

    def _fail(self, exc: SQLAlchemyError, action: str, table: str):
        self.db.rollback()
        logger.error("Store %s on '%s' failed: %s", action, table, exc)
        raise StoreError(f"{action} on '{table}' failed: {exc}") from exc

    def _written(self, table: str, event: str, rows: list[Record]):
        if rows:
            self._pending_events.append((table, event, rows))
        if self._depth == 0:
            self._commit()

    def _commit(self):
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self._pending_events.clear()
            self._fail(exc, "commit", "session")
        events, self._pending_events = self._pending_events, []
        for table, event, rows in events:
            self.feed.publish(table, event, rows)

    # -- DataStore --

    @contextmanager
    def transaction(self):
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.db.rollback()
                self._pending_events.clear()
            raise
        self._depth -= 1
        if self._depth == 0:
            self._commit()

    def select(self, table, filters=None, order=(), limit=None):
        model = self._model(table)
        q = self._query(model, filters)
        for key in order:
            descending = key.startswith("-")
            col = getattr(model, self._attr(model, key.lstrip("-")))
            q = q.order_by(col.desc() if descending else col.asc())
        if limit is not None:
            q = q.limit(limit)
        try:
            return [self._to_record(model, obj) for obj in q.all()]
        except SQLAlchemyError as exc:
            self._fail(exc, "select", table)

    def insert(self, table, records):
        model = self._model(table)
        if isinstance(records, dict):
            records = [records]
        objs = []
        for values in records:
            obj = model()
            self._apply(model, obj, values)
            objs.append(obj)
        try:
            self.db.add_all(objs)
            self.db.flush()
            rows = [self._to_record(model, obj) for obj in objs]
        except SQLAlchemyError as exc:
            self._fail(exc, "insert", table)
        self._written(table, "insert", rows)
        return rows

    def update(self, table, values, filters):
        model = self._model(table)
        try:
            objs = self._query(model, filters).with_for_update().all()
            for obj in objs:
                self._apply(model, obj, values)
            self.db.flush()
            rows = [self._to_record(model, obj) for obj in objs]
        except SQLAlchemyError as exc:
            self._fail(exc, "update", table)
        self._written(table, "update", rows)
        return rows

    def upsert(self, table, record, conflict_keys):
        model = self._model(table)
        conflict_keys = tuple(conflict_keys)
        missing = [k for k in conflict_keys if k not in record]
        if missing:
            raise StoreError(f"Upsert on '{table}' is missing conflict keys: {', '.join(missing)}")
        try:
            obj = self._query(model, {k: record[k] for k in conflict_keys}).first()
            event = "update"
            if obj is None:
                obj = model()
                self.db.add(obj)
                event = "insert"
            self._apply(model, obj, record)
            self.db.flush()
            row = self._to_record(model, obj)
        except SQLAlchemyError as exc:
            self._fail(exc, "upsert", table)
        self._written(table, event, [row])
        return row

    def delete(self, table, filters):
        model = self._model(table)
        try:
            objs = self._query(model, filters).all()
            rows = [self._to_record(model, obj) for obj in objs]
            for obj in objs:
                self.db.delete(obj)
            self.db.flush()
        except SQLAlchemyError as exc:
            self._fail(exc, "delete", table)
        self._written(table, "delete", rows)
        return len(rows)

    def count(self, table, filters=None):
        model = self._model(table)
        try:
            return self._query(model, filters).count()
        except SQLAlchemyError as exc:
            self._fail(exc, "count", table)

    def call_procedure(self, name, **args):
        fn = PROCEDURES.get(name)
        if fn is None:
            raise StoreError(f"Unknown procedure '{name}'")
        try:
            result = fn(self.db, **args)
        except SQLAlchemyError as exc:
            self._fail(exc, f"procedure {name}", "session")
        if self._depth == 0:
            self._commit()
        return result


def get_store(db: Session = Depends(get_db)) -> SqlAlchemyStore:
    """Dependency: a data store bound to the request's session."""
    return SqlAlchemyStore(db)
