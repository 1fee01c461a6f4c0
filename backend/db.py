"""
Database connection helper.

This module centralizes how connections are created. Right now we use
`psycopg.connect(settings.db_url)` which opens a new connection per call.

Usage:
    from db import get_conn, store_errors
    with store_errors(), get_conn() as conn:
        with conn.transaction():
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")

psycopg's connection context manager commits on a clean exit and rolls
back when the block raises, so a failed fan-out or bulk update leaves no
rows behind.
"""

from contextlib import contextmanager

import psycopg

from errors import StoreUnavailable
from settings import settings


def get_conn():
    """Return a new psycopg connection using `settings.db_url`.

    A short `connect_timeout` keeps requests from hanging indefinitely if
    the database is unreachable.
    """

    return psycopg.connect(settings.db_url, connect_timeout=settings.db_connect_timeout)


@contextmanager
def store_errors():
    """Translate connection-level driver failures into `StoreUnavailable`."""

    try:
        yield
    except psycopg.OperationalError as e:
        raise StoreUnavailable(f"Store unavailable: {e}") from e
