from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import psycopg2
from psycopg2 import sql

from leadms.db.postgres import get_cursor
from leadms.utils.logger import get_logger

logger = get_logger(__name__)

LEADS_TABLE = "leads"
CONVERSATIONS_TABLE = "followup_conversations"
ATTACHMENTS_TABLE = "attachments"

# Columns callers may write; id and timestamps are assigned by the store.
WRITABLE_COLUMNS: Dict[str, set] = {
    LEADS_TABLE: {
        "user_id",
        "created_by",
        "business_name",
        "contact_person",
        "phone",
        "email",
        "address",
        "city",
        "lead_status",
        "stage",
        "next_followup_date",
        "interested_services",
        "notes_first_call",
    },
    CONVERSATIONS_TABLE: {
        "lead_id",
        "created_by",
        "conversation_text",
        "conversation_date",
    },
    ATTACHMENTS_TABLE: {
        "lead_id",
        "file_name",
        "file_url",
        "file_type",
        "uploaded_by",
    },
}

READABLE_COLUMNS: Dict[str, set] = {
    LEADS_TABLE: WRITABLE_COLUMNS[LEADS_TABLE] | {"id", "created_at", "updated_at"},
    CONVERSATIONS_TABLE: WRITABLE_COLUMNS[CONVERSATIONS_TABLE] | {"id", "created_at", "updated_at"},
    ATTACHMENTS_TABLE: WRITABLE_COLUMNS[ATTACHMENTS_TABLE] | {"id", "uploaded_at"},
}


class RecordStoreError(RuntimeError):
    """A read or write against the record store failed."""

    def __init__(self, operation: str, table: str, detail: str | None = None):
        detail = detail or "Record store request failed without details."
        super().__init__(f"{operation} on {table} failed: {detail}")
        self.operation = operation
        self.table = table
        self.detail = detail


class RecordNotFoundError(RecordStoreError):
    def __init__(self, operation: str, table: str, record_id: str):
        super().__init__(operation, table, f"no row with id={record_id}")
        self.record_id = record_id


def _check_table(table: str) -> None:
    if table not in WRITABLE_COLUMNS:
        raise ValueError(f"Unknown table: {table}")


def _check_column(table: str, column: str) -> None:
    if column not in READABLE_COLUMNS[table]:
        raise ValueError(f"Unknown column {column!r} for table {table}")


def _to_db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple, set)):
        return [_to_db_value(item) for item in value]
    return value


def _escape_like(pattern: str) -> str:
    return (
        pattern.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )


class RecordStore:
    """Table access against the hosted Postgres database.

    Every method is a single statement in its own transaction. Nothing is
    retried here; callers decide what a failure means for them.
    """

    def select(
        self,
        table: str,
        order_by: str = "created_at",
        direction: str = "desc",
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        _check_table(table)
        _check_column(table, order_by)
        direction_sql = sql.SQL("ASC") if direction.lower() == "asc" else sql.SQL("DESC")

        clauses = []
        values: List[Any] = []
        for column, value in (filters or {}).items():
            _check_column(table, column)
            clauses.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
            values.append(_to_db_value(value))

        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(table))
        if clauses:
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses)
        query += sql.SQL(" ORDER BY {} {}").format(sql.Identifier(order_by), direction_sql)
        if limit is not None:
            query += sql.SQL(" LIMIT %s")
            values.append(limit)

        rows = self._fetch("select", table, query, values)
        logger.debug("Selected %d rows from %s", len(rows), table)
        return rows

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        _check_table(table)
        allowed = {k: _to_db_value(v) for k, v in row.items() if k in WRITABLE_COLUMNS[table]}
        if not allowed:
            raise ValueError(f"No insertable columns supplied for {table}")

        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(column) for column in allowed),
            sql.SQL(", ").join(sql.Placeholder() for _ in allowed),
        )
        rows = self._fetch("insert", table, query, list(allowed.values()))
        created = rows[0]
        logger.info("Inserted row into %s id=%s", table, created.get("id"))
        return created

    def update(self, table: str, record_id: str, partial_row: Mapping[str, Any]) -> Dict[str, Any]:
        _check_table(table)
        allowed = {
            k: _to_db_value(v) for k, v in partial_row.items() if k in WRITABLE_COLUMNS[table]
        }
        if not allowed:
            raise ValueError(f"No updatable columns supplied for {table}")

        expressions = [
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in allowed
        ]
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(expressions),
        )
        rows = self._fetch("update", table, query, [*allowed.values(), record_id])
        if not rows:
            raise RecordNotFoundError("update", table, record_id)
        logger.info("Updated %s id=%s fields=%s", table, record_id, sorted(allowed))
        return rows[0]

    def delete(self, table: str, record_id: str) -> bool:
        _check_table(table)
        query = sql.SQL("DELETE FROM {} WHERE id = %s").format(sql.Identifier(table))
        try:
            with get_cursor() as (_, cur):
                cur.execute(query, (record_id,))
                deleted = cur.rowcount > 0
        except psycopg2.Error as exc:
            raise RecordStoreError("delete", table, str(exc).strip()) from exc
        if not deleted:
            raise RecordNotFoundError("delete", table, record_id)
        logger.info("Deleted %s id=%s", table, record_id)
        return True

    def text_search(self, table: str, column: str, pattern: str) -> List[Dict[str, Any]]:
        """Case-insensitive substring match of ``pattern`` against ``column``."""
        _check_table(table)
        _check_column(table, column)
        query = sql.SQL("SELECT * FROM {} WHERE {} ILIKE %s").format(
            sql.Identifier(table),
            sql.Identifier(column),
        )
        return self._fetch("text_search", table, query, [f"%{_escape_like(pattern)}%"])

    def _fetch(self, operation: str, table: str, query, values) -> List[Dict[str, Any]]:
        try:
            with get_cursor() as (_, cur):
                cur.execute(query, tuple(values))
                return [dict(row) for row in cur.fetchall()]
        except psycopg2.Error as exc:
            raise RecordStoreError(operation, table, str(exc).strip()) from exc
