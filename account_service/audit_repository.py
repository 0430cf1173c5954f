"""Database repository for the account login audit."""

from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo

from psycopg.rows import tuple_row

from .domain.account import Account
from .domain.audit import LoginAudit, distinct_local_dates
from .domain.errors import AccountNotFound
from .domain.filters import DateRange, LoginAuditFilter, Page
from .repository import ACCOUNT_COLUMNS, PostgresRepository, map_account

logger = logging.getLogger(__name__)


class LoginAuditRepository(PostgresRepository):
    """Append-only login audit rows and the filtered reads over them."""

    def create_audit(self, email: str, login_time: datetime) -> int:
        """Record a login for the account identified by ``email``.

        Raises
        ------
        AccountNotFound
            When no account carries ``email``; nothing is written in that case.
        """
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    INSERT INTO account_login_audit (account_id, login_time)
                    SELECT id, %s FROM account WHERE email = %s
                    RETURNING id
                    """,
                    (login_time, email),
                )
                row = cur.fetchone()
            if row is None:
                raise AccountNotFound("Account not found")
            conn.commit()
        return row[0]

    def find_by_filters(self, audit_filter: LoginAuditFilter, page: Page) -> list[LoginAudit]:
        """Return one page of audit rows matching ``audit_filter``, ordered by account email."""
        if page.limit == 0:
            return []
        where_sql, params = audit_filter.to_sql()
        query = f"""
            SELECT {ACCOUNT_COLUMNS}, l.login_time, l.id
            FROM account_login_audit l
            JOIN account a ON a.id = l.account_id
            WHERE {where_sql}
            ORDER BY a.email ASC, l.login_time ASC, l.id ASC
            LIMIT %s OFFSET %s
        """
        params.extend([page.limit, page.offset])

        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [
            LoginAudit(account=map_account(row), login_time=row[7], audit_id=row[8])
            for row in rows
        ]

    def find_distinct_accounts(self, date_range: DateRange, page: Page) -> list[Account]:
        """Return accounts with at least one login inside ``date_range``, ordered by email."""
        if page.limit == 0:
            return []
        with self._connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    SELECT {ACCOUNT_COLUMNS}
                    FROM account a
                    WHERE EXISTS (
                        SELECT 1 FROM account_login_audit l
                        WHERE l.account_id = a.id
                          AND (%(start)s::timestamptz IS NULL OR l.login_time >= %(start)s)
                          AND (%(end)s::timestamptz IS NULL OR l.login_time <= %(end)s)
                    )
                    ORDER BY a.email ASC
                    LIMIT %(limit)s OFFSET %(offset)s
                    """,
                    {
                        "start": date_range.start,
                        "end": date_range.end,
                        "limit": page.limit,
                        "offset": page.offset,
                    },
                )
                rows = cur.fetchall()
        return [map_account(row) for row in rows]

    def find_distinct_login_dates(self, zone: tzinfo | None, page: Page) -> list[date]:
        """Return one page of distinct local login dates in ascending order.

        Login times are streamed through a server-side cursor that is closed before
        returning, whether the page fills early, the scan completes or it fails.
        """
        if page.limit == 0:
            return []
        with self._connection() as conn:
            with conn.cursor(name="account_login_dates", row_factory=tuple_row) as cur:
                cur.execute("SELECT l.login_time FROM account_login_audit l ORDER BY l.login_time ASC")
                return distinct_local_dates((row[0] for row in cur), zone, page)
