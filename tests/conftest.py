from __future__ import annotations

import itertools
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone, tzinfo

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from account_service.api import audit_routes, routes
from account_service.cache import InMemoryLoginDatesCache
from account_service.domain.account import ROLE_ADMIN, ROLE_USER, Account, Credentials
from account_service.domain.audit import LoginAudit, distinct_local_dates
from account_service.domain.audit_service import LoginAuditService
from account_service.domain.contracts import SaveAccountInput
from account_service.domain.errors import AccountAlreadyExists, AccountNotFound
from account_service.domain.filters import DateRange, LoginAuditFilter, Page
from account_service.domain.service import AccountService
from account_service.populate import populate
from account_service.repository import RefreshTokenRecord
from account_service.security.tokens import issue_access_token

# Fixed offset so date bucketing does not depend on the machine running the suite.
ZONE = timezone(timedelta(hours=9), "JST")


class FakeAccountRepository:
    """In-memory stand-in for the Postgres account repository."""

    def __init__(self) -> None:
        self._accounts: dict[int, Account] = {}
        self._credentials: dict[int, Credentials] = {}
        self._refresh_tokens: dict[str, RefreshTokenRecord] = {}
        self._ids = itertools.count(1)

    @staticmethod
    def _copy(account: Account) -> Account:
        return replace(account, addresses=dict(account.addresses), contacts=dict(account.contacts))

    def _email_taken(self, email: str, account_id: int | None = None) -> bool:
        return any(
            stored.email == email and stored.account_id != account_id
            for stored in self._accounts.values()
        )

    def create_account(self, payload: SaveAccountInput, password_hash: str) -> Account:
        if self._email_taken(payload.email):
            raise AccountAlreadyExists("account already exists")
        account = Account(
            account_id=next(self._ids),
            email=payload.email,
            first_name=payload.first_name,
            middle_name=payload.middle_name,
            last_name=payload.last_name,
            addresses=dict(payload.addresses),
            contacts=dict(payload.contacts),
        )
        self._accounts[account.account_id] = account
        self._credentials[account.account_id] = Credentials(
            account_id=account.account_id,
            password_hash=password_hash,
            enabled=payload.enabled,
            authorities=frozenset(payload.authorities),
        )
        return self._copy(account)

    def get_account(self, account_id: int) -> Account | None:
        account = self._accounts.get(account_id)
        return self._copy(account) if account else None

    def find_account_by_email(self, email: str) -> Account | None:
        for account in self._accounts.values():
            if account.email == email:
                return self._copy(account)
        return None

    def list_accounts(self, page: Page) -> list[Account]:
        ordered = sorted(self._accounts.values(), key=lambda account: account.email)
        return [self._copy(account) for account in page.apply(ordered)]

    def update_account(self, account: Account) -> Account | None:
        if account.account_id not in self._accounts:
            return None
        if self._email_taken(account.email, account.account_id):
            raise AccountAlreadyExists("account already exists")
        self._accounts[account.account_id] = self._copy(account)
        return self._copy(account)

    def update_password(self, account_id: int, password_hash: str) -> None:
        self._credentials[account_id].password_hash = password_hash

    def delete_account(self, account_id: int) -> bool:
        self._credentials.pop(account_id, None)
        return self._accounts.pop(account_id, None) is not None

    def delete_account_by_email(self, email: str) -> bool:
        account = self.find_account_by_email(email)
        return account is not None and self.delete_account(account.account_id)

    def get_credentials(self, account_id: int) -> Credentials | None:
        return self._credentials.get(account_id)

    def create_refresh_token(
        self,
        *,
        account_id: int,
        token_hash: str,
        expires_at: datetime,
        metadata: dict | None = None,
    ) -> RefreshTokenRecord:
        record = RefreshTokenRecord(
            token_id=str(uuid.uuid4()),
            account_id=account_id,
            expires_at=expires_at,
            revoked_at=None,
        )
        self._refresh_tokens[token_hash] = record
        return record

    def find_refresh_token(self, token_hash: str) -> RefreshTokenRecord | None:
        record = self._refresh_tokens.get(token_hash)
        if record and record.revoked_at is None:
            return record
        return None

    def revoke_refresh_token(self, token_id: str) -> None:
        for record in self._refresh_tokens.values():
            if record.token_id == token_id and record.revoked_at is None:
                record.revoked_at = datetime.now(timezone.utc)


class FakeLoginAuditRepository:
    """In-memory login audit evaluating filters with ``LoginAuditFilter.matches``.

    Rows reference accounts by id, so deleting an account drops its audits the
    way the foreign-key cascade does.
    """

    def __init__(self, accounts: FakeAccountRepository) -> None:
        self._accounts = accounts
        self._rows: list[tuple[int, int, datetime]] = []
        self._ids = itertools.count(1)
        self.queries = 0

    def create_audit(self, email: str, login_time: datetime) -> int:
        account = self._accounts.find_account_by_email(email)
        if account is None:
            raise AccountNotFound("Account not found")
        audit_id = next(self._ids)
        self._rows.append((audit_id, account.account_id, login_time))
        return audit_id

    def all_audits(self) -> list[LoginAudit]:
        audits = []
        for audit_id, account_id, login_time in self._rows:
            account = self._accounts.get_account(account_id)
            if account is not None:
                audits.append(LoginAudit(account=account, login_time=login_time, audit_id=audit_id))
        return sorted(audits, key=lambda audit: (audit.account.email, audit.login_time, audit.audit_id))

    def find_by_filters(self, audit_filter: LoginAuditFilter, page: Page) -> list[LoginAudit]:
        self.queries += 1
        return page.apply([audit for audit in self.all_audits() if audit_filter.matches(audit)])

    def find_distinct_accounts(self, date_range: DateRange, page: Page) -> list[Account]:
        self.queries += 1
        accounts: dict[str, Account] = {}
        for audit in self.all_audits():
            if date_range.contains(audit.login_time):
                accounts.setdefault(audit.account.email, audit.account)
        return page.apply([accounts[email] for email in sorted(accounts)])

    def find_distinct_login_dates(self, zone: tzinfo | None, page: Page) -> list[date]:
        self.queries += 1
        timestamps = sorted(audit.login_time for audit in self.all_audits())
        return distinct_local_dates(timestamps, zone, page)


@pytest.fixture
def account_repository() -> FakeAccountRepository:
    return FakeAccountRepository()


@pytest.fixture
def audit_repository(account_repository) -> FakeLoginAuditRepository:
    return FakeLoginAuditRepository(account_repository)


@pytest.fixture
def login_audit_service(audit_repository) -> LoginAuditService:
    return LoginAuditService(audit_repository, zone=ZONE, cache=InMemoryLoginDatesCache(ttl_seconds=60))


@pytest.fixture
def account_service(account_repository, login_audit_service) -> AccountService:
    return AccountService(account_repository, login_audit_service)


@pytest.fixture
def populated(account_repository, audit_repository) -> FakeLoginAuditRepository:
    """The sixteen fixture accounts with thirty September 2016 logins each."""
    populate(account_repository, audit_repository, zone=ZONE)
    return audit_repository


@pytest.fixture
def api_client(account_service, login_audit_service):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.include_router(audit_routes.router)
    app.state.account_service = account_service
    app.state.login_audit_service = login_audit_service

    with TestClient(app) as client:
        yield client


def bearer(account: Account, *authorities: str) -> dict[str, str]:
    token, _ = issue_access_token(
        subject=account.email,
        account_id=account.account_id,
        authorities=authorities,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(account_service) -> dict[str, str]:
    admin = account_service.save_account(
        SaveAccountInput(
            email="admin@isr.co.jp",
            password="admin-pass",
            first_name="Ada",
            last_name="Admin",
            authorities=frozenset({ROLE_ADMIN, ROLE_USER}),
        )
    )
    return bearer(admin, ROLE_ADMIN, ROLE_USER)


@pytest.fixture
def user_headers(account_service) -> dict[str, str]:
    user = account_service.save_account(
        SaveAccountInput(
            email="user@isr.co.jp",
            password="user-pass",
            first_name="Uma",
            last_name="User",
        )
    )
    return bearer(user, ROLE_USER)
