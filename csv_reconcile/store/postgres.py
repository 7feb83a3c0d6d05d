from __future__ import annotations

import re
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from .base import StoredRecord, StoreError

"""PostgreSQL RecordStore on psycopg2.

Every public call runs in its own transaction (``with connection:`` commits
on success and rolls back on error). No transaction spans calls: a failed
call never undoes an earlier one.
Bulk inserts use psycopg2.extras.execute_values.
"""

try:  # pragma: no cover - optional until psycopg2 present at runtime
    import psycopg2
    from psycopg2.extras import RealDictCursor, execute_values
except Exception:  # pragma: no cover
    psycopg2 = None  # type: ignore
    RealDictCursor = None  # type: ignore
    execute_values = None  # type: ignore

__all__ = [
    "PostgresRecordStore",
    "connect",
]

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _ident(name: str) -> str:
    # テーブル名/列名は英数字と _ のみ許可
    if not _IDENT.match(name):
        raise StoreError(f"invalid identifier: {name!r}")
    return f'"{name}"'


def _columns(records: Sequence[Mapping[str, Any]]) -> list[str]:
    seen: dict[str, None] = {}
    for record in records:
        for key in record:
            seen.setdefault(key, None)
    return list(seen)


def connect(dsn: str) -> Any:  # pragma: no cover (thin wrapper)
    if psycopg2 is None:
        raise StoreError("psycopg2 not available")
    try:
        conn = psycopg2.connect(dsn)
    except Exception as e:
        raise StoreError(f"connection failed: {e}") from e
    conn.autocommit = False
    return conn


class PostgresRecordStore:
    def __init__(self, connection: Any, page_size: int = 1000) -> None:
        if execute_values is None:
            raise StoreError("psycopg2 not available")
        self.connection = connection
        self.page_size = page_size

    def _run(self, fn):
        try:
            with self.connection:
                with self.connection.cursor(cursor_factory=RealDictCursor) as cur:
                    return fn(cur)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(str(e)) from e

    def lookup(
        self,
        table: str,
        match_fields: Sequence[str],
        values: Collection[str],
        *,
        casefold: bool = False,
    ) -> list[StoredRecord]:
        if not values or not match_fields:
            return []
        wanted = [v.lower() for v in values] if casefold else list(values)
        if casefold:
            clauses = [f"lower({_ident(f)}::text) = ANY(%s)" for f in match_fields]
        else:
            clauses = [f"{_ident(f)}::text = ANY(%s)" for f in match_fields]
        sql = f"SELECT * FROM {_ident(table)} WHERE " + " OR ".join(clauses)

        def _do(cur):
            cur.execute(sql, [wanted] * len(match_fields))
            return [dict(r) for r in cur.fetchall()]

        return self._run(_do)

    def _insert(self, table: str, records: Sequence[Mapping[str, Any]], returning: bool) -> list[StoredRecord]:
        columns = _columns(records)
        cols_sql = ",".join(_ident(c) for c in columns)
        sql = f"INSERT INTO {_ident(table)} ({cols_sql}) VALUES %s"
        if returning:
            sql += " RETURNING *"
        rows = [[record.get(c) for c in columns] for record in records]

        def _do(cur):
            result = execute_values(cur, sql, rows, page_size=self.page_size, fetch=returning)
            return [dict(r) for r in result] if returning and result else []

        return self._run(_do)

    def create_entities(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[StoredRecord]:
        if not records:
            return []
        return self._insert(table, records, returning=True)

    def insert_records(self, table: str, records: Sequence[Mapping[str, Any]]) -> int:
        if not records:
            return 0
        self._insert(table, records, returning=False)
        return len(records)

    def insert_parent(self, table: str, record: Mapping[str, Any]) -> Any:
        columns = list(record)
        cols_sql = ",".join(_ident(c) for c in columns)
        placeholders = ",".join(["%s"] * len(columns))
        sql = f"INSERT INTO {_ident(table)} ({cols_sql}) VALUES ({placeholders}) RETURNING id"

        def _do(cur):
            cur.execute(sql, [record[c] for c in columns])
            row = cur.fetchone()
            if row is None:
                raise StoreError(f"{table}: insert returned no id")
            return row["id"]

        return self._run(_do)

    def update_records(self, table: str, updates: Sequence[tuple[Any, Mapping[str, Any]]]) -> int:
        statements = []
        for record_id, changes in updates:
            if not changes:
                continue
            assignments = ",".join(f"{_ident(c)} = %s" for c in changes)
            statements.append((
                f"UPDATE {_ident(table)} SET {assignments} WHERE id = %s",
                [*changes.values(), record_id],
            ))

        def _do(cur):
            for sql, params in statements:
                cur.execute(sql, params)
                if cur.rowcount == 0:
                    raise StoreError(f"{table}: record {params[-1]} not found")
            return len(updates)

        return self._run(_do)
