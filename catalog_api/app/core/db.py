"""
SQLite persistence for users, products and bookings.

``get_connection`` opens a connection, ``get_cursor`` wraps one in a
commit/rollback block and ``init_db`` brings the schema up to date when
the application starts.  Every request opens its own connection, so
requests never share in‑process state; concurrent writers are
serialised by SQLite's own locking.

Invariants that must hold under concurrent requests are enforced by
the database rather than by application code: UNIQUE indexes reject
duplicate e‑mails, phones and coupon codes, and counters are updated
with ``SET x = x + 1`` statements.

Applied schema versions are recorded in the ``migrations`` table;
``init_db`` runs every newer entry of ``MIGRATIONS`` in order.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import settings

logger = logging.getLogger(__name__)

# Seconds a connection waits for a competing writer before failing.
BUSY_TIMEOUT = 30


def get_database_path() -> str:
    """Absolute path of the database file.

    Relative ``DATABASE_URL`` values are taken relative to the
    ``catalog_api`` package directory, not the working directory.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # catalog_api/
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` objects so columns can be
    accessed by name.  Foreign keys are enforced per connection.
    """
    conn = sqlite3.connect(get_database_path(), timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit.

    The transaction is committed when the block exits normally and
    rolled back when it raises.
    """
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: initial schema
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT NOT NULL,
            phone TEXT NOT NULL,
            password TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
            is_active INTEGER NOT NULL DEFAULT 1,
            last_login TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        CREATE UNIQUE INDEX IF NOT EXISTS ux_users_email ON users(email);
        CREATE UNIQUE INDEX IF NOT EXISTS ux_users_phone ON users(phone);

        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            category TEXT NOT NULL,
            condition TEXT NOT NULL,
            type TEXT NOT NULL,
            availability TEXT NOT NULL DEFAULT 'Available',
            features TEXT NOT NULL DEFAULT '[]',
            specifications TEXT NOT NULL DEFAULT '{}',
            tags TEXT NOT NULL DEFAULT '[]',
            images TEXT NOT NULL DEFAULT '[]',
            image_public_ids TEXT NOT NULL DEFAULT '[]',
            price REAL NOT NULL DEFAULT 0,
            original_price REAL,
            discount REAL NOT NULL DEFAULT 0,
            stock INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            views INTEGER NOT NULL DEFAULT 0,
            likes INTEGER NOT NULL DEFAULT 0,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(created_by) REFERENCES users(id)
        );

        CREATE TABLE IF NOT EXISTS bookings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_id INTEGER NOT NULL,
            product_name TEXT,
            product_image TEXT,
            product_category TEXT,
            user_id INTEGER NOT NULL,
            customer_name TEXT NOT NULL,
            customer_phone TEXT NOT NULL,
            customer_address TEXT NOT NULL,
            quantity INTEGER NOT NULL,
            booking_date TIMESTAMP NOT NULL,
            actual_price REAL NOT NULL DEFAULT 0,
            strike_price REAL NOT NULL DEFAULT 0,
            selling_price REAL NOT NULL DEFAULT 0,
            total_amount REAL NOT NULL DEFAULT 0,
            discount_percentage REAL NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'confirmed',
            coupon_code TEXT,
            cancellation_reason TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(product_id) REFERENCES products(id),
            FOREIGN KEY(user_id) REFERENCES users(id)
        );
        CREATE UNIQUE INDEX IF NOT EXISTS ux_bookings_coupon_code ON bookings(coupon_code);
        """,
    ),
    # Migration 2: indices for the common listing filters
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_products_listing ON products(is_active, created_at);
        CREATE INDEX IF NOT EXISTS idx_products_category ON products(category);
        CREATE INDEX IF NOT EXISTS idx_bookings_user_id ON bookings(user_id);
        CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);
        """,
    ),
]


def init_db() -> None:
    """Create the database file if needed and apply pending migrations.

    Safe to call on every start; versions already recorded are skipped.
    New schema changes go at the end of ``MIGRATIONS`` with the next
    version number.
    """
    db_path = Path(get_database_path())
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with get_cursor() as cursor:
        # WAL lets readers proceed while a writer holds the lock.
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)")
        row = cursor.execute("SELECT MAX(version) AS version FROM migrations").fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                logger.info("Applying migration %s", version)
                cursor.executescript(sql)
                cursor.execute("INSERT INTO migrations (version) VALUES (?)", (version,))
                current_version = version
