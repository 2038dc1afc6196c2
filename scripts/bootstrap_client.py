#!/usr/bin/env python3
"""Emit deterministic SQL to register an API client for the posting rights service."""

from __future__ import annotations

import argparse
import hashlib

DEFAULT_SCOPES = ("posting_rights:read",)


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def _sql_text_array(values: list[str]) -> str:
    if not values:
        return "'{}'::text[]"
    return "array[" + ", ".join(_quote_sql(value) for value in values) + "]::text[]"


def render_sql(*, client_id: str, api_key: str, scopes: list[str], name: str | None) -> str:
    key_hash = hashlib.sha256(api_key.encode("utf-8")).hexdigest()
    client_value = _quote_sql(client_id)
    name_value = _quote_sql(name or client_id)
    scopes_value = _sql_text_array(scopes)

    return f"""-- Posting rights API client bootstrap SQL
-- Run this in a privileged Postgres session against the rights database.

insert into api_clients (client_id, name, scopes, enabled)
values ({client_value}, {name_value}, {scopes_value}, true)
on conflict (client_id) do update
set name = excluded.name,
    scopes = excluded.scopes,
    enabled = true;

insert into api_client_credentials (client_id, key_hash, is_active)
select id, {_quote_sql(key_hash)}, true
from api_clients
where client_id = {client_value};
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to register a posting rights API client.")
    parser.add_argument("--client-id", required=True, help="Value clients send in the X-Client-Id header")
    parser.add_argument("--api-key", required=True, help="Plain API key; only its SHA-256 hash is stored")
    parser.add_argument(
        "--scope",
        action="append",
        dest="scopes",
        choices=["posting_rights:read", "posting_rights:admin"],
        help="Scope to grant (repeatable, defaults to posting_rights:read)",
    )
    parser.add_argument("--name", help="Human readable client name")
    args = parser.parse_args()

    print(
        render_sql(
            client_id=args.client_id,
            api_key=args.api_key,
            scopes=args.scopes or list(DEFAULT_SCOPES),
            name=args.name,
        )
    )


if __name__ == "__main__":
    main()
