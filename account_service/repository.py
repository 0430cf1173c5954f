"""Database repository for account, credential and refresh-token data."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

import psycopg
from psycopg import errors
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import Account, Address, Credentials
from .domain.contracts import SaveAccountInput
from .domain.errors import AccountAlreadyExists, DataStoreFailure, QueryCancelled
from .domain.filters import Page

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS account (
        id BIGSERIAL PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        first_name TEXT NOT NULL,
        middle_name TEXT,
        last_name TEXT NOT NULL,
        addresses JSONB NOT NULL DEFAULT '{}'::jsonb,
        contacts JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS account_credentials (
        account_id BIGINT PRIMARY KEY REFERENCES account (id) ON DELETE CASCADE,
        password_hash TEXT NOT NULL,
        enabled BOOLEAN NOT NULL DEFAULT TRUE,
        authorities TEXT[] NOT NULL DEFAULT '{}'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS refresh_tokens (
        token_id UUID PRIMARY KEY,
        account_id BIGINT NOT NULL REFERENCES account (id) ON DELETE CASCADE,
        token_hash TEXT NOT NULL UNIQUE,
        expires_at TIMESTAMPTZ NOT NULL,
        revoked_at TIMESTAMPTZ,
        metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS account_login_audit (
        id BIGSERIAL PRIMARY KEY,
        account_id BIGINT NOT NULL REFERENCES account (id) ON DELETE CASCADE,
        login_time TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS account_login_audit_login_time_idx ON account_login_audit (login_time)",
    "CREATE INDEX IF NOT EXISTS account_login_audit_account_id_idx ON account_login_audit (account_id)",
)

ACCOUNT_COLUMNS = "a.id, a.email, a.first_name, a.middle_name, a.last_name, a.addresses, a.contacts"


@dataclass(slots=True)
class RefreshTokenRecord:
    """One row of ``refresh_tokens``, minus the hash and metadata."""

    token_id: str
    account_id: int
    expires_at: datetime
    revoked_at: datetime | None


def map_account(row: tuple) -> Account:
    """Convert the ``ACCOUNT_COLUMNS`` prefix of a row into an ``Account``."""
    return Account(
        account_id=row[0],
        email=row[1],
        first_name=row[2],
        middle_name=row[3],
        last_name=row[4],
        addresses={label: Address(**value) for label, value in (row[5] or {}).items()},
        contacts=dict(row[6] or {}),
    )


def _addresses_json(addresses: dict[str, Address]) -> Json:
    return Json({label: asdict(address) for label, address in addresses.items()})


class PostgresRepository:
    """Shared connection handling for the Postgres-backed repositories."""

    def __init__(self, pool: ConnectionPool, *, statement_timeout_ms: int = 0) -> None:
        """Store the connection pool and the per-transaction statement timeout."""
        self._pool = pool
        self._statement_timeout_ms = statement_timeout_ms

    @contextmanager
    def _connection(self) -> Iterator[psycopg.Connection]:
        """Borrow a pooled connection, translating database failures into domain errors."""
        try:
            with self._pool.connection() as conn:
                if self._statement_timeout_ms:
                    conn.execute(
                        "SELECT set_config('statement_timeout', %s, true)",
                        (str(self._statement_timeout_ms),),
                    )
                yield conn
        except errors.QueryCanceled as exc:
            logger.warning("query cancelled: %s", exc)
            raise QueryCancelled("query cancelled before completion") from exc
        except errors.UniqueViolation as exc:
            raise AccountAlreadyExists("account already exists") from exc
        except psycopg.Error as exc:
            logger.exception("data store failure")
            raise DataStoreFailure("data store failure") from exc


class AccountRepository(PostgresRepository):
    """Postgres-backed account, credential and refresh-token persistence."""

    def create_schema(self) -> None:
        """Create the service tables when they do not exist yet."""
        with self._connection() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)
            conn.commit()
        logger.info("account schema ensured")

    def create_account(self, payload: SaveAccountInput, password_hash: str) -> Account:
        """Persist an account together with its credentials."""
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO account AS a (email, first_name, middle_name, last_name, addresses, contacts)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING {ACCOUNT_COLUMNS}
                    """,
                    (
                        payload.email,
                        payload.first_name,
                        payload.middle_name,
                        payload.last_name,
                        _addresses_json(payload.addresses),
                        Json(payload.contacts),
                    ),
                )
                account = map_account(cur.fetchone())
                cur.execute(
                    """
                    INSERT INTO account_credentials (account_id, password_hash, enabled, authorities)
                    VALUES (%s, %s, %s, %s)
                    """,
                    (account.account_id, password_hash, payload.enabled, sorted(payload.authorities)),
                )
            conn.commit()
        return account

    def get_account(self, account_id: int) -> Account | None:
        """Fetch an account by identifier or return ``None``."""
        return self._fetch_account("a.id = %s", account_id)

    def find_account_by_email(self, email: str) -> Account | None:
        """Fetch an account by email or return ``None``."""
        return self._fetch_account("a.email = %s", email)

    def _fetch_account(self, condition: str, value: Any) -> Account | None:
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {ACCOUNT_COLUMNS} FROM account a WHERE {condition}", (value,))
                row = cur.fetchone()
        if not row:
            return None
        return map_account(row)

    def list_accounts(self, page: Page) -> list[Account]:
        """Return one page of accounts ordered by email."""
        if page.limit == 0:
            return []
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {ACCOUNT_COLUMNS} FROM account a ORDER BY a.email ASC LIMIT %s OFFSET %s",
                    (page.limit, page.offset),
                )
                rows = cur.fetchall()
        return [map_account(row) for row in rows]

    def update_account(self, account: Account) -> Account | None:
        """Overwrite the stored profile of ``account``; ``None`` when it no longer exists."""
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    UPDATE account AS a
                    SET email = %s, first_name = %s, middle_name = %s, last_name = %s,
                        addresses = %s, contacts = %s, updated_at = NOW()
                    WHERE a.id = %s
                    RETURNING {ACCOUNT_COLUMNS}
                    """,
                    (
                        account.email,
                        account.first_name,
                        account.middle_name,
                        account.last_name,
                        _addresses_json(account.addresses),
                        Json(account.contacts),
                        account.account_id,
                    ),
                )
                row = cur.fetchone()
            conn.commit()
        if not row:
            return None
        return map_account(row)

    def update_password(self, account_id: int, password_hash: str) -> None:
        """Replace the stored password digest for an account."""
        with self._connection() as conn:
            conn.execute(
                "UPDATE account_credentials SET password_hash = %s WHERE account_id = %s",
                (password_hash, account_id),
            )
            conn.commit()

    def delete_account(self, account_id: int) -> bool:
        """Delete an account (credentials, tokens and audits cascade); ``False`` if absent."""
        return self._delete("id = %s", account_id)

    def delete_account_by_email(self, email: str) -> bool:
        """Delete an account by email; ``False`` if absent."""
        return self._delete("email = %s", email)

    def _delete(self, condition: str, value: Any) -> bool:
        with self._connection() as conn:
            cur = conn.execute(f"DELETE FROM account WHERE {condition}", (value,))
            deleted = cur.rowcount > 0
            conn.commit()
        return deleted

    def get_credentials(self, account_id: int) -> Credentials | None:
        """Return the stored credentials for an account."""
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    SELECT account_id, password_hash, enabled, authorities
                    FROM account_credentials
                    WHERE account_id = %s
                    """,
                    (account_id,),
                )
                row = cur.fetchone()
        if not row:
            return None
        return Credentials(
            account_id=row[0],
            password_hash=row[1],
            enabled=row[2],
            authorities=frozenset(row[3]),
        )

    def create_refresh_token(
        self,
        *,
        account_id: int,
        token_hash: str,
        expires_at: datetime,
        metadata: dict[str, Any] | None = None,
    ) -> RefreshTokenRecord:
        """Store the digest of a newly issued refresh token."""
        token_id = str(uuid.uuid4())
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    INSERT INTO refresh_tokens (token_id, account_id, token_hash, expires_at, metadata)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING token_id::text, account_id, expires_at, revoked_at
                    """,
                    (token_id, account_id, token_hash, expires_at, Json(metadata or {})),
                )
                row = cur.fetchone()
            conn.commit()
        return RefreshTokenRecord(*row)

    def find_refresh_token(self, token_hash: str) -> RefreshTokenRecord | None:
        """Look up an unrevoked token by digest; expiry is checked by the caller."""
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    SELECT token_id::text, account_id, expires_at, revoked_at
                    FROM refresh_tokens
                    WHERE token_hash = %s AND revoked_at IS NULL
                    """,
                    (token_hash,),
                )
                row = cur.fetchone()
        if not row:
            return None
        return RefreshTokenRecord(*row)

    def revoke_refresh_token(self, token_id: str) -> None:
        """Revoke a token so it cannot be exchanged again."""
        with self._connection() as conn:
            conn.execute(
                """
                UPDATE refresh_tokens
                SET revoked_at = NOW()
                WHERE token_id = %s AND revoked_at IS NULL
                """,
                (token_id,),
            )
            conn.commit()
