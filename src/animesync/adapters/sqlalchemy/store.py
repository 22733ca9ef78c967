"""Row store over SQLAlchemy Core for local development and integration tests."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from animesync.config.storage import get_database_config
from animesync.domain.errors import ConflictError, NotFoundError, RemoteError
from animesync.domain.model import ChangeKind, format_timestamp, parse_timestamp
from animesync.domain.ports import RowStore

from .tables import TABLES, UTCDateTime, metadata

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from sqlalchemy import ColumnElement, Connection, Table
    from sqlalchemy.engine import Engine
    from sqlalchemy.engine.interfaces import DBAPIConnection
    from sqlalchemy.pool import ConnectionPoolEntry

    from animesync.domain.model import Row
    from animesync.domain.model import Table as TableName
    from animesync.domain.ports import ChangePublisher

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the local store is used before :func:`startup`."""


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None


_STATE = _AdapterState()


def _enable_sqlite_foreign_keys(dbapi_connection: DBAPIConnection, _: ConnectionPoolEntry) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_local_engine(database_uri: str) -> Engine:
    """Engine for ``database_uri``; in-memory SQLite shares one connection."""

    if database_uri.startswith("sqlite"):
        in_memory = database_uri.rstrip("/").endswith(("sqlite:", "pysqlite:")) or (
            ":memory:" in database_uri
        )
        engine = create_engine(
            database_uri,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else None,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(database_uri)


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Create the engine and the schema for the local store."""

    if _STATE.engine is not None and not force:
        raise StartupError("Local store already initialised. Pass force=True to reconfigure.")
    resolved = engine or create_local_engine(database_uri or get_database_config().uri)
    metadata.create_all(resolved)
    _STATE.engine = resolved
    log.debug("Local store ready at %s", resolved.url)
    return resolved


def configured_engine() -> Engine | None:
    return _STATE.engine


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


def _serialize(value: object) -> object:
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


def _to_row(mapping: Mapping[str, Any]) -> Row:
    return {key: _serialize(value) for key, value in mapping.items()}


class SqlAlchemyRowStore:
    """Implements :class:`~animesync.domain.ports.RowStore` over local tables.

    Each call runs in its own transaction. Committed writes are echoed to the
    optional ``publisher`` with full rows, deletes included.
    """

    def __init__(
        self,
        engine: Engine | None = None,
        *,
        publisher: ChangePublisher | None = None,
    ) -> None:
        resolved = engine or _STATE.engine
        if resolved is None:
            raise StartupError(
                "Local store not initialised. Call animesync.adapters.sqlalchemy.startup() first."
            )
        self._engine = resolved
        self._publisher = publisher

    async def select(
        self,
        table: TableName,
        *,
        filters: Mapping[str, object] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        search: tuple[str, str] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        tbl = self._table(table)
        stmt = select(tbl).where(*self._conditions(tbl, filters))
        if search is not None:
            column, term = search
            stmt = stmt.where(self._column(tbl, column).ilike(f"%{term}%"))
        if order_by is not None:
            column = self._column(tbl, order_by)
            stmt = stmt.order_by(column.asc() if ascending else column.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with _translate_errors(f"select from {table}"), self._engine.connect() as conn:
            return [_to_row(row) for row in conn.execute(stmt).mappings()]

    async def select_one(self, table: TableName, *, filters: Mapping[str, object]) -> Row:
        rows = await self.select(table, filters=filters, limit=2)
        if not rows:
            raise NotFoundError(f"No {table} row matches {dict(filters)}")
        if len(rows) > 1:
            raise RemoteError(f"More than one {table} row matches {dict(filters)}")
        return rows[0]

    async def insert(self, table: TableName, row: Mapping[str, object]) -> Row:
        tbl = self._table(table)
        values = self._values(tbl, row)
        with _translate_errors(f"insert into {table}"), self._engine.begin() as conn:
            result = conn.execute(tbl.insert().values(values))
            key = dict(zip(_primary_key(tbl), result.inserted_primary_key or (), strict=True))
            stored = self._fetch(conn, tbl, key)[0]
        self._publish(table, ChangeKind.INSERT, new=stored)
        return stored

    async def upsert(
        self,
        table: TableName,
        row: Mapping[str, object],
        *,
        on_conflict: Sequence[str],
    ) -> Row:
        tbl = self._table(table)
        values = self._values(tbl, row)
        missing = [column for column in on_conflict if column not in values]
        if missing:
            raise RemoteError(f"Upsert into {table} lacks conflict columns {missing}")
        key = {column: values[column] for column in on_conflict}
        changes = {column: value for column, value in values.items() if column not in key}
        with _translate_errors(f"upsert into {table}"), self._engine.begin() as conn:
            existing = self._fetch(conn, tbl, key)
            if existing:
                if changes:
                    conn.execute(tbl.update().where(*self._conditions(tbl, key)).values(changes))
                kind = ChangeKind.UPDATE
            else:
                conn.execute(tbl.insert().values(values))
                kind = ChangeKind.INSERT
            stored = self._fetch(conn, tbl, key)[0]
        self._publish(table, kind, new=stored)
        return stored

    async def update(
        self,
        table: TableName,
        values: Mapping[str, object],
        *,
        filters: Mapping[str, object],
    ) -> list[Row]:
        tbl = self._table(table)
        changes = self._values(tbl, values)
        with _translate_errors(f"update {table}"), self._engine.begin() as conn:
            keys = [
                {column: row[column] for column in _primary_key(tbl)}
                for row in self._fetch(conn, tbl, filters, serialize=False)
            ]
            if keys and changes:
                conn.execute(tbl.update().where(*self._conditions(tbl, filters)).values(changes))
            stored = [row for key in keys for row in self._fetch(conn, tbl, key)]
        for row in stored:
            self._publish(table, ChangeKind.UPDATE, new=row)
        return stored

    async def delete(self, table: TableName, *, filters: Mapping[str, object]) -> None:
        tbl = self._table(table)
        with _translate_errors(f"delete from {table}"), self._engine.begin() as conn:
            removed = self._fetch(conn, tbl, filters)
            if removed:
                conn.execute(tbl.delete().where(*self._conditions(tbl, filters)))
        for row in removed:
            self._publish(table, ChangeKind.DELETE, old=row)

    def _table(self, table: TableName) -> Table:
        try:
            return TABLES[table]
        except KeyError as exc:
            raise RemoteError(f"Unknown table {table!r}") from exc

    @staticmethod
    def _column(tbl: Table, name: str) -> ColumnElement[Any]:
        if name not in tbl.c:
            raise RemoteError(f"Unknown column {name!r} on {tbl.name}")
        return tbl.c[name]

    def _conditions(
        self, tbl: Table, filters: Mapping[str, object] | None
    ) -> list[ColumnElement[bool]]:
        if not filters:
            return []
        conditions: list[ColumnElement[bool]] = []
        for name, value in filters.items():
            column = self._column(tbl, name)
            conditions.append(column.is_(None) if value is None else column == value)
        return conditions

    def _values(self, tbl: Table, row: Mapping[str, object]) -> dict[str, object]:
        values: dict[str, object] = {}
        for name, value in row.items():
            column = self._column(tbl, name)
            if isinstance(column.type, UTCDateTime) and value is not None:
                value = parse_timestamp(value)  # noqa: PLW2901
            values[name] = value
        return values

    def _fetch(
        self,
        conn: Connection,
        tbl: Table,
        filters: Mapping[str, object],
        *,
        serialize: bool = True,
    ) -> list[Row]:
        rows = conn.execute(select(tbl).where(*self._conditions(tbl, filters))).mappings()
        if serialize:
            return [_to_row(row) for row in rows]
        return [dict(row) for row in rows]

    def _publish(
        self,
        table: TableName,
        kind: ChangeKind,
        *,
        new: Row | None = None,
        old: Row | None = None,
    ) -> None:
        if self._publisher is None:
            return
        self._publisher.publish(table, kind, new=new, old=old)


def _primary_key(tbl: Table) -> list[str]:
    return [column.name for column in tbl.primary_key.columns]


@contextmanager
def _translate_errors(context: str) -> Iterator[None]:
    """Turn driver errors raised inside the block into domain errors."""

    try:
        yield
    except IntegrityError as exc:
        message = f"{context} failed: {exc.orig}"
        if _is_unique_violation(exc):
            raise ConflictError(message, code="23505") from exc
        raise RemoteError(message) from exc
    except SQLAlchemyError as exc:
        raise RemoteError(f"{context} failed: {exc}") from exc


def _is_unique_violation(exc: IntegrityError) -> bool:
    text = str(exc.orig).lower()
    return "unique" in text or "duplicate" in text or "primary key" in text


if TYPE_CHECKING:
    _store_check: RowStore = SqlAlchemyRowStore()
