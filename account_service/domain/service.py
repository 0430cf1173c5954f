"""Account service orchestrating persistence, authentication, and login auditing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..config import get_settings
from ..repository import AccountRepository
from ..security.passwords import hash_password, verify_password
from ..security.tokens import generate_refresh_token, hash_refresh_token, issue_access_token
from .account import KNOWN_AUTHORITIES, Account, Credentials
from .audit_service import LoginAuditService
from .contracts import SaveAccountInput, UpdateAccountInput
from .errors import AccountNotFound, GrantedAuthorityNotFound, Unauthorized
from .filters import Page

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenBundle:
    """Access and refresh tokens handed out by a successful grant."""

    access_token: str
    access_expires_in: int
    refresh_token: str
    refresh_expires_in: int


class AccountService:
    """Account management and the password and refresh-token grants."""

    def __init__(self, repository: AccountRepository, login_audits: LoginAuditService) -> None:
        """Store dependencies used to orchestrate persistence, token issuance and auditing."""
        self._repository = repository
        self._login_audits = login_audits

    def save_account(self, payload: SaveAccountInput) -> Account:
        """Register an account and its credentials.

        Raises
        ------
        GrantedAuthorityNotFound
            When an authority other than the known ``ROLE_*`` values is requested.
        AccountAlreadyExists
            When the email is already registered.
        """
        unknown = set(payload.authorities) - KNOWN_AUTHORITIES
        if unknown:
            raise GrantedAuthorityNotFound(f"GrantedAuthority not found: {', '.join(sorted(unknown))}")
        account = self._repository.create_account(payload, hash_password(payload.password))
        logger.info("account created", extra={"account_id": account.account_id})
        return account

    def update_account(self, account_id: int, payload: UpdateAccountInput) -> Account:
        """Apply profile changes to the account with ``account_id``."""
        return self._apply_update(self.find_account_by_id(account_id), payload)

    def update_current_account(self, email: str, payload: UpdateAccountInput) -> Account:
        """Apply profile changes to the authenticated caller's own account."""
        return self._apply_update(self.get_current_account(email), payload)

    def _apply_update(self, account: Account, payload: UpdateAccountInput) -> Account:
        if payload.email is not None:
            account.email = payload.email
        if payload.first_name is not None:
            account.first_name = payload.first_name
        if payload.middle_name is not None:
            account.middle_name = payload.middle_name or None
        if payload.last_name is not None:
            account.last_name = payload.last_name
        if payload.addresses is not None:
            account.addresses = dict(payload.addresses)
        if payload.contacts is not None:
            account.contacts = dict(payload.contacts)

        updated = self._repository.update_account(account)
        if updated is None:
            raise AccountNotFound("Account not found")
        if payload.password is not None:
            self._repository.update_password(updated.account_id, hash_password(payload.password))
        return updated

    def find_all_accounts(self, page: Page | None = None) -> list[Account]:
        """Return accounts ordered by email."""
        return self._repository.list_accounts(page or Page())

    def find_account_by_id(self, account_id: int) -> Account:
        account = self._repository.get_account(account_id)
        if account is None:
            raise AccountNotFound("Account not found")
        return account

    def find_account_by_email(self, email: str) -> Account:
        account = self._repository.find_account_by_email(email)
        if account is None:
            raise AccountNotFound("Account not found")
        return account

    def get_current_account(self, email: str) -> Account:
        """Resolve the account behind an authenticated token subject."""
        account = self._repository.find_account_by_email(email)
        if account is None:
            raise Unauthorized("Authentication is required to access this service")
        return account

    def delete_account_by_id(self, account_id: int) -> None:
        if not self._repository.delete_account(account_id):
            raise AccountNotFound("Account not found")
        self._login_audits.evict_login_dates()
        logger.info("account deleted", extra={"account_id": account_id})

    def delete_account_by_email(self, email: str) -> None:
        if not self._repository.delete_account_by_email(email):
            raise AccountNotFound("Account not found")
        self._login_audits.evict_login_dates()
        logger.info("account deleted", extra={"email": email})

    def authenticate(self, email: str, password: str) -> tuple[Account, Credentials]:
        """Check a password login and record it in the login audit.

        Raises
        ------
        Unauthorized
            For unknown emails, disabled credentials or a wrong password; the message
            does not reveal which.
        """
        account = self._repository.find_account_by_email(email)
        credentials = self._repository.get_credentials(account.account_id) if account else None
        if (
            account is None
            or credentials is None
            or not credentials.enabled
            or not verify_password(password, credentials.password_hash)
        ):
            logger.info("authentication failed", extra={"email": email})
            raise Unauthorized("Bad credentials")

        self._login_audits.audit(account.email)
        return account, credentials

    def issue_token(self, email: str, password: str, scopes: list[str] | None = None) -> TokenBundle:
        """Resource-owner password grant: authenticate, audit the login, issue tokens."""
        account, credentials = self.authenticate(email, password)
        return self._issue_bundle(account, credentials, scopes)

    def _issue_bundle(
        self, account: Account, credentials: Credentials, scopes: list[str] | None
    ) -> TokenBundle:
        access_token, expires_in = issue_access_token(
            subject=account.email,
            account_id=account.account_id,
            authorities=credentials.authorities,
            scopes=scopes,
        )

        settings = get_settings()
        refresh_token, token_hash = generate_refresh_token()
        refresh_expires = datetime.now(timezone.utc) + timedelta(seconds=settings.refresh_ttl_seconds)
        self._repository.create_refresh_token(
            account_id=account.account_id,
            token_hash=token_hash,
            expires_at=refresh_expires,
            metadata={"scopes": scopes or []},
        )

        return TokenBundle(
            access_token=access_token,
            access_expires_in=expires_in,
            refresh_token=refresh_token,
            refresh_expires_in=settings.refresh_ttl_seconds,
        )

    def refresh_access_token(
        self, refresh_token: str, scopes: list[str] | None = None
    ) -> TokenBundle:
        """Exchange a refresh token for a new access/refresh pair.

        A refresh is not a login and is not recorded in the login audit.

        Parameters
        ----------
        refresh_token:
            Opaque token returned by an earlier grant.
        scopes:
            Scopes for the new access token; the defaults apply when omitted.
        """
        token_hash = hash_refresh_token(refresh_token)
        record = self._repository.find_refresh_token(token_hash)
        if record is None:
            raise Unauthorized("invalid refresh token")
        if record.revoked_at is not None:
            raise Unauthorized("refresh token revoked")
        if record.expires_at <= datetime.now(timezone.utc):
            self._repository.revoke_refresh_token(record.token_id)
            raise Unauthorized("refresh token expired")

        account = self._repository.get_account(record.account_id)
        credentials = self._repository.get_credentials(record.account_id) if account else None
        if account is None or credentials is None or not credentials.enabled:
            self._repository.revoke_refresh_token(record.token_id)
            raise Unauthorized("account unavailable")

        self._repository.revoke_refresh_token(record.token_id)
        return self._issue_bundle(account, credentials, scopes)
