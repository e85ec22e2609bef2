import time
from contextlib import contextmanager
from typing import Generator

import psycopg2
from psycopg2 import OperationalError
from psycopg2.extras import RealDictCursor

from leadms.config import settings


def _connection_params() -> dict[str, str]:
    return {
        "DB_HOST": settings.db_host,
        "DB_PORT": str(settings.db_port),
        "DB_NAME": settings.db_name,
        "DB_USER": settings.db_user,
        "DB_PASSWORD": settings.db_password,
    }


def _get_retry_settings() -> tuple[int, float]:
    """Connection attempts happen before any statement runs, so retrying is safe."""
    return (max(1, settings.db_conn_retries), max(0.0, settings.db_conn_retry_delay))


def get_connection() -> psycopg2.extensions.connection:
    cfg = _connection_params()
    max_retries, retry_delay = _get_retry_settings()
    last_error: OperationalError | None = None
    conn: psycopg2.extensions.connection | None = None
    for attempt in range(1, max_retries + 1):
        try:
            conn = psycopg2.connect(
                host=cfg["DB_HOST"],
                port=int(cfg["DB_PORT"]),
                dbname=cfg["DB_NAME"],
                user=cfg["DB_USER"],
                password=cfg["DB_PASSWORD"],
                options="-c client_encoding=UTF8",
            )
            break
        except OperationalError as exc:
            last_error = exc
            if attempt == max_retries:
                raise
            time.sleep(retry_delay)
    if conn is None:
        raise last_error or RuntimeError("Failed to connect to the database.")
    return conn


@contextmanager
def get_cursor(cursor_factory=RealDictCursor) -> Generator[tuple[psycopg2.extensions.connection, psycopg2.extensions.cursor], None, None]:
    conn = get_connection()
    cur = conn.cursor(cursor_factory=cursor_factory)
    try:
        yield conn, cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()
        conn.close()
