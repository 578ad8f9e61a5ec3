"""SQL database access over SQLAlchemy engines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Table, create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.pool import QueuePool
from sqlalchemy.schema import CreateColumn

from yuinfra.kv import StoreKind, StoreType


class SqlDbError(Exception):
    """A SQL database could not be opened or migrated."""


@dataclass
class SqlDbConf:
    """Which SQL database to open and how to pool its connections.

    For sqlite ``dsn`` is a file path (empty for an in-memory database);
    for mysql and postgre it is a database URL.
    """

    sql_db_type: str
    dsn: str = ""
    max_open_connections: int = 0
    max_idle_connections: int = 0


_SCHEMES = {"sqlite": "sqlite:///", "mysql": "mysql://", "postgre": "postgresql://"}


class SqlDB:
    """An open SQL database."""

    def __init__(self, engine: Engine, store_type: StoreType) -> None:
        self.engine = engine
        self.store_type = store_type
        self.store_kind = StoreKind.SQL

    @staticmethod
    def _table(table: Any) -> Table:
        if isinstance(table, Table):
            return table
        mapped = getattr(table, "__table__", None)
        if isinstance(mapped, Table):
            return mapped
        raise SqlDbError(f"not a table or mapped class: {table!r}")

    def create_if_not_exist(self, table: Any) -> None:
        """Create ``table`` unless a table of that name already exists."""
        tbl = self._table(table)
        try:
            if inspect(self.engine).has_table(tbl.name, schema=tbl.schema):
                return
            tbl.create(self.engine)
        except SQLAlchemyError as exc:
            raise SqlDbError(str(exc)) from exc

    def auto_migrate(self, table: Any) -> None:
        """Create ``table`` or add the columns it is missing; nothing is dropped."""
        tbl = self._table(table)
        try:
            inspector = inspect(self.engine)
            if not inspector.has_table(tbl.name, schema=tbl.schema):
                tbl.create(self.engine)
                return
            existing = {col["name"] for col in inspector.get_columns(tbl.name, schema=tbl.schema)}
            dialect = self.engine.dialect
            table_name = dialect.identifier_preparer.format_table(tbl)
            with self.engine.begin() as conn:
                for column in tbl.columns:
                    if column.name in existing:
                        continue
                    column_sql = CreateColumn(column).compile(dialect=dialect)
                    conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_sql}"))
        except SQLAlchemyError as exc:
            raise SqlDbError(str(exc)) from exc

    def close(self) -> None:
        """Release all pooled connections."""
        self.engine.dispose()

    def __enter__(self) -> SqlDB:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _url(cfg: SqlDbConf) -> str:
    if "://" in cfg.dsn:
        return cfg.dsn
    return _SCHEMES[cfg.sql_db_type] + cfg.dsn


def new_sql_db(cfg: SqlDbConf) -> SqlDB:
    """Open the database that ``cfg`` describes."""
    if cfg.sql_db_type not in _SCHEMES:
        raise SqlDbError(f"no sql db type: {cfg.sql_db_type}")

    options: dict[str, Any] = {}
    if cfg.max_open_connections > 0 or cfg.max_idle_connections > 0:
        options["poolclass"] = QueuePool
        idle = cfg.max_idle_connections if cfg.max_idle_connections > 0 else 5
        if cfg.max_open_connections > 0:
            idle = min(idle, cfg.max_open_connections)
            options["max_overflow"] = cfg.max_open_connections - idle
        options["pool_size"] = idle

    try:
        engine = create_engine(_url(cfg), **options)
    except (ArgumentError, ImportError, SQLAlchemyError) as exc:
        raise SqlDbError(str(exc)) from exc

    store_type = StoreType.EMBEDDED if cfg.sql_db_type == "sqlite" else StoreType.SERVER
    return SqlDB(engine, store_type)