from __future__ import annotations

import asyncio
import functools
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, TypeVar

import mysql.connector

from ..core.exceptions import StoreError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


async def run_blocking(operation: str, func: Callable[..., T], *args, **kwargs) -> T:
    """Run a blocking connector call off the event loop.

    Driver failures surface as StoreError; domain errors pass through.
    """

    try:
        return await asyncio.to_thread(functools.partial(func, *args, **kwargs))
    except mysql.connector.Error as e:
        logger.error(f"Store operation failed: {operation}: {e}", exc_info=True)
        raise StoreError(f"Document store unavailable ({operation})") from e
