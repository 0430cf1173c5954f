"""Seed data for development and demonstrations.

Sixteen accounts whose names overlap in every combination the login-audit filters
care about, each logged in once a day at local midnight through September 2016.
"""

from __future__ import annotations

import logging
import random
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Protocol

from .domain.account import ROLE_ADMIN, ROLE_USER, Account
from .domain.contracts import SaveAccountInput
from .security.passwords import hash_password

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = "1234"

FIXTURE_ACCOUNTS: tuple[tuple[str, str, str, str], ...] = (
    # Same first name, middle name, and last name
    ("wa@gmail.com", "Warren", "Lo", "Nocos"),
    ("war@gmail.com", "Warren", "Lo", "Nocos"),
    ("warr@gmail.com", "Warren", "Lo", "Nocos"),
    ("warre@gmail.com", "Warren", "Lo", "Nocos"),
    # Same middle name, and last name
    ("loulonocos@gmail.com", "Lou", "Lo", "Nocos"),
    ("ricalonocos@gmail.com", "Rica", "Lo", "Nocos"),
    ("tinalonocos@gmail.com", "Tina", "Lo", "Nocos"),
    ("alenlonocos@gmail.com", "Alen", "Lo", "Nocos"),
    # Same first name and middle name
    ("warrenlosa@gmail.com", "Warren", "Lo", "Sa"),
    ("warrenloprex@gmail.com", "Warren", "Lo", "Prex"),
    ("warrenloantonio@gmail.com", "Warren", "Lo", "Antonio"),
    ("warrenlokortana@gmail.com", "Warren", "Lo", "Kortana"),
    # Same first name, and last name
    ("warrenveranocos@gmail.com", "Warren", "Vera", "Nocos"),
    ("warrenloiusnocos@gmail.com", "Warren", "Loius", "Nocos"),
    ("warrenquizanocos@gmail.com", "Warren", "Quiza", "Nocos"),
    ("warrenwevicknocos@gmail.com", "Warren", "Wevick", "Nocos"),
)

FIRST_LOGIN_DATE = date(2016, 9, 1)
LOGIN_DAYS = 30

_AUTHORITY_SETS = (
    frozenset({ROLE_ADMIN, ROLE_USER}),
    frozenset({ROLE_USER}),
)


class AccountWriter(Protocol):
    def find_account_by_email(self, email: str) -> Account | None: ...

    def create_account(self, payload: SaveAccountInput, password_hash: str) -> Account: ...


class AuditWriter(Protocol):
    def create_audit(self, email: str, login_time: datetime) -> int: ...


def fixture_login_times(zone: tzinfo | None = None) -> list[datetime]:
    """Local midnight of every seeded login day; ``zone=None`` is the server's zone."""
    times = []
    for offset in range(LOGIN_DAYS):
        moment = datetime.combine(FIRST_LOGIN_DATE + timedelta(days=offset), time.min, tzinfo=zone)
        times.append(moment if zone is not None else moment.astimezone())
    return times


def populate(
    accounts: AccountWriter,
    audits: AuditWriter,
    *,
    zone: tzinfo | None = None,
    seed: int = 2016,
) -> int:
    """Insert the fixture accounts and their logins; returns how many accounts were added.

    Accounts that already exist are left alone, so repeated runs are harmless.
    """
    rng = random.Random(seed)
    password_hash = hash_password(DEFAULT_PASSWORD)
    login_times = fixture_login_times(zone)
    created = 0
    for email, first_name, middle_name, last_name in FIXTURE_ACCOUNTS:
        authorities = rng.choice(_AUTHORITY_SETS)
        if accounts.find_account_by_email(email) is not None:
            continue
        accounts.create_account(
            SaveAccountInput(
                email=email,
                password=DEFAULT_PASSWORD,
                first_name=first_name,
                middle_name=middle_name,
                last_name=last_name,
                authorities=authorities,
            ),
            password_hash,
        )
        for login_time in login_times:
            audits.create_audit(email, login_time)
        created += 1
        if ROLE_ADMIN in authorities:
            logger.info("seeded administrator %s", email)
    logger.info("populated %d accounts", created)
    return created
