"""DB operations for `customers` and `jobs`."""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Dict, List, Optional

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from stores.db import DEFAULT_DB_TIMEOUT_SECONDS, get_connection

logger = logging.getLogger(__name__)

JSON_COLUMNS = ("parts", "work_steps", "pro_tips", "warnings")

JOB_COLUMNS = (
    "customer_id",
    "description",
    "raw_description",
    "job_type",
    "vehicle",
    "labor_hours",
    "labor_rate",
    "labor_cost",
    "parts",
    "parts_cost",
    "shop_supplies_percent",
    "shop_supplies_cost",
    "subtotal",
    "tax_set_aside",
    "net_after_tax",
    "flat_rate_label",
    "timeline",
    "work_steps",
    "notes",
    "pro_tips",
    "warnings",
)


class StoreError(RuntimeError):
    pass


class JobStore:
    """Customer lookup-or-insert and job persistence."""

    def __init__(self, connect: Optional[Callable] = None, timeout_s: float = DEFAULT_DB_TIMEOUT_SECONDS):
        self._connect = connect or functools.partial(get_connection, timeout_s)

    def _find_customer(self, cur, column: str, value: str) -> Optional[Dict[str, Any]]:
        cur.execute(
            f"SELECT * FROM customers WHERE {column} = %s ORDER BY id LIMIT 1",
            (value,),
        )
        row = cur.fetchone()
        return dict(row) if row else None

    def find_or_create_customer(self, name: str, phone: Optional[str] = None, email: Optional[str] = None) -> Dict[str, Any]:
        """Match by email first, then phone; otherwise create a new customer."""
        try:
            conn = self._connect()
        except (psycopg2.Error, RuntimeError) as e:
            raise StoreError(f"Database unavailable: {e}") from e
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                if email:
                    row = self._find_customer(cur, "email", email)
                    if row:
                        return row
                if phone:
                    row = self._find_customer(cur, "phone", phone)
                    if row:
                        return row

                cur.execute(
                    """
                    INSERT INTO customers (name, phone, email)
                    VALUES (%s, %s, %s)
                    RETURNING *
                    """,
                    (name, phone or None, email or None),
                )
                created = dict(cur.fetchone())
                conn.commit()
                logger.info("Created customer id=%s", created.get("id"))
                return created
        except psycopg2.Error as e:
            conn.rollback()
            raise StoreError(f"Customer save failed: {e}") from e
        finally:
            conn.close()

    def insert_job(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        values = []
        for col in JOB_COLUMNS:
            value = payload.get(col)
            if col in JSON_COLUMNS:
                value = Json(value or [])
            values.append(value)

        placeholders = ", ".join(["%s"] * len(JOB_COLUMNS))
        try:
            conn = self._connect()
        except (psycopg2.Error, RuntimeError) as e:
            raise StoreError(f"Database unavailable: {e}") from e
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"INSERT INTO jobs ({', '.join(JOB_COLUMNS)}) VALUES ({placeholders}) RETURNING *",
                    values,
                )
                row = dict(cur.fetchone())
                conn.commit()
                logger.info("Saved job id=%s customer_id=%s", row.get("id"), row.get("customer_id"))
                return row
        except psycopg2.Error as e:
            conn.rollback()
            raise StoreError(f"Job save failed: {e}") from e
        finally:
            conn.close()

    def list_recent_jobs(self, limit: int = 50) -> List[Dict[str, Any]]:
        try:
            conn = self._connect()
        except (psycopg2.Error, RuntimeError) as e:
            raise StoreError(f"Database unavailable: {e}") from e
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    "SELECT * FROM jobs ORDER BY created_at DESC LIMIT %s",
                    (limit,),
                )
                return [dict(r) for r in cur.fetchall()]
        except psycopg2.Error as e:
            raise StoreError(f"Job query failed: {e}") from e
        finally:
            conn.close()
