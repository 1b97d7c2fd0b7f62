#!/usr/bin/env python3
"""Emit deterministic SQL that seeds (or promotes) a Jobly admin user."""

from __future__ import annotations

import argparse

from jobly.core.security import hash_password


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(
    *,
    username: str,
    password_hash: str,
    first_name: str,
    last_name: str,
    email: str,
) -> str:
    return f"""-- Jobly admin bootstrap SQL
-- Run this against the Jobly database after applying db/schema.sql.

insert into users (username, password, first_name, last_name, email, is_admin)
values ({_quote_sql(username)}, {_quote_sql(password_hash)}, {_quote_sql(first_name)}, {_quote_sql(last_name)}, {_quote_sql(email)}, true)
on conflict (username) do update
set password = excluded.password,
    is_admin = true;
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to bootstrap a Jobly admin user.")
    parser.add_argument("--username", required=True, help="Admin username")
    parser.add_argument("--password", required=True, help="Plain-text password; only its bcrypt hash is emitted")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    parser.add_argument("--email", required=True)
    parser.add_argument(
        "--rounds",
        type=int,
        default=12,
        help="bcrypt work factor for the emitted hash",
    )
    args = parser.parse_args()

    print(
        render_sql(
            username=args.username,
            password_hash=hash_password(args.password, rounds=args.rounds),
            first_name=args.first_name,
            last_name=args.last_name,
            email=args.email,
        )
    )


if __name__ == "__main__":
    main()
