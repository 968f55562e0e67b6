#!/usr/bin/env python3
"""
Create an administrator account in the catalog SQLite database, or
promote an existing account to admin.

The password is stored as a PBKDF2 hash (see ``core.security``); it is
never printed.  Migrations are applied first, so the script also works
against a fresh database.

Usage:
    python create_admin.py --email admin@example.com --name "Site Admin" --phone 9876543210

If --password is omitted, you will be prompted to enter it securely.
The database path comes from ``DATABASE_URL`` unless --db is given.
"""

import argparse
import getpass
import os
import sys

from catalog_api.app.core.config import settings
from catalog_api.app.core.db import get_cursor, init_db
from catalog_api.app.core.security import hash_password


def main() -> None:
    ap = argparse.ArgumentParser(description="Create or promote a catalog admin (SQLite).")
    ap.add_argument("--db", help="Path to SQLite DB file (defaults to DATABASE_URL)")
    ap.add_argument("--email", required=True, help="Admin e-mail")
    ap.add_argument("--name", default="Administrator", help="Display name for a new account")
    ap.add_argument("--phone", help="10-digit phone number, required for a new account")
    ap.add_argument("--password", help="Password. If omitted, you'll be prompted securely.")
    args = ap.parse_args()

    if args.db:
        settings.database_url = os.path.abspath(args.db)
    init_db()
    email = args.email.strip().lower()

    with get_cursor() as cur:
        row = cur.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone()
        if row:
            cur.execute(
                "UPDATE users SET role = 'admin', is_active = 1, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (row["id"],),
            )
            print(f"[+] Promoted existing user to admin: {email}")
            return

        if not args.phone:
            print("[!] --phone is required when creating a new account.", file=sys.stderr)
            sys.exit(1)
        password = args.password or getpass.getpass("Enter admin password: ")
        if len(password) < 6:
            print("[!] Password must be at least 6 characters long.", file=sys.stderr)
            sys.exit(1)
        cur.execute(
            "INSERT INTO users (name, email, phone, password, role) VALUES (?, ?, ?, ?, 'admin')",
            (args.name.strip(), email, args.phone.strip(), hash_password(password)),
        )
        print(f"[+] Admin account created: {email}")


if __name__ == "__main__":
    main()
