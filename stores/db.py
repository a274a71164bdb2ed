"""Postgres (Supabase) connection and table setup for customers/jobs (psycopg2)."""

from __future__ import annotations

import logging
import math
import os

import psycopg2

logger = logging.getLogger(__name__)

DEFAULT_DB_TIMEOUT_SECONDS = 10.0


def connect_kwargs(timeout_s: float = DEFAULT_DB_TIMEOUT_SECONDS) -> dict:
    """Connect timeout (whole seconds, libpq minimum 2) and per-statement timeout."""
    return {
        "connect_timeout": max(2, int(math.ceil(timeout_s))),
        "options": f"-c statement_timeout={int(timeout_s * 1000)}",
    }


def get_connection(timeout_s: float = DEFAULT_DB_TIMEOUT_SECONDS):
    """Get a database connection."""
    # Read at call-time: dotenv may load after this module is imported.
    db_url = os.environ.get("DATABASE_URL") or os.environ.get("SUPABASE_DB_URL")
    if not db_url:
        raise RuntimeError("DATABASE_URL not configured")
    return psycopg2.connect(db_url, **connect_kwargs(timeout_s))


def init_estimator_tables(timeout_s: float = DEFAULT_DB_TIMEOUT_SECONDS) -> bool:
    """Create customers/jobs tables if they don't exist."""
    conn = get_connection(timeout_s)
    try:
        with conn.cursor() as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS customers (
                    id SERIAL PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    phone VARCHAR(64),
                    email VARCHAR(255),
                    created_at TIMESTAMPTZ DEFAULT NOW()
                );

                CREATE INDEX IF NOT EXISTS idx_customers_email ON customers(email);
                CREATE INDEX IF NOT EXISTS idx_customers_phone ON customers(phone);
                """
            )

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS jobs (
                    id SERIAL PRIMARY KEY,
                    customer_id INTEGER REFERENCES customers(id) ON DELETE SET NULL,
                    description TEXT,
                    raw_description TEXT,
                    job_type VARCHAR(255),
                    vehicle VARCHAR(255),
                    labor_hours NUMERIC(8,2),
                    labor_rate NUMERIC(10,2),
                    labor_cost NUMERIC(12,2),
                    parts JSONB DEFAULT '[]'::jsonb,
                    parts_cost NUMERIC(12,2),
                    shop_supplies_percent NUMERIC(6,2),
                    shop_supplies_cost NUMERIC(12,2),
                    subtotal NUMERIC(12,2),
                    tax_set_aside NUMERIC(12,2),
                    net_after_tax NUMERIC(12,2),
                    flat_rate_label VARCHAR(255),
                    timeline TEXT,
                    work_steps JSONB DEFAULT '[]'::jsonb,
                    notes TEXT,
                    pro_tips JSONB DEFAULT '[]'::jsonb,
                    warnings JSONB DEFAULT '[]'::jsonb,
                    created_at TIMESTAMPTZ DEFAULT NOW()
                );

                CREATE INDEX IF NOT EXISTS idx_jobs_created_at ON jobs(created_at DESC);
                """
            )
        conn.commit()
        logger.info("Estimator tables ready")
        return True
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
