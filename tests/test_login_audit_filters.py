"""Filter composition, pagination and aggregation over the login audit."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from account_service.domain.account import Account
from account_service.domain.audit import LoginAudit, aggregate_by_email, distinct_local_dates
from account_service.domain.contracts import SaveAccountInput
from account_service.domain.errors import InvalidPage, InvalidRange
from account_service.domain.filters import END_OF_DAY, DateRange, LoginAuditFilter, Page
from account_service.populate import FIXTURE_ACCOUNTS, LOGIN_DAYS

from .conftest import ZONE

SEPTEMBER_START = date(2016, 9, 1)
SEPTEMBER_END = date(2016, 9, 30)


def brute_force(audits, first_names=(), middle_names=(), last_names=(), date_range=DateRange()):
    """Oracle written without the filter object: plain nested conditions."""
    selected = []
    for audit in audits:
        account = audit.account
        if first_names and account.first_name not in first_names:
            continue
        if middle_names and account.middle_name not in middle_names:
            continue
        if last_names and account.last_name not in last_names:
            continue
        if date_range.start is not None and audit.login_time < date_range.start:
            continue
        if date_range.end is not None and audit.login_time > date_range.end:
            continue
        selected.append(audit)
    return selected


def test_scenario_and_across_fields_or_within_field(populated, login_audit_service):
    audits = login_audit_service.find_filtered_login_audits(
        start=SEPTEMBER_START,
        end=SEPTEMBER_END,
        first_names={"Warren", "Prex"},
        middle_names={"Lo", "Quiza"},
        last_names={"Nocos", "Antonio"},
    )

    expected = brute_force(
        populated.all_audits(),
        first_names={"Warren", "Prex"},
        middle_names={"Lo", "Quiza"},
        last_names={"Nocos", "Antonio"},
    )
    assert audits == expected
    assert {audit.account.email for audit in audits} == {
        "wa@gmail.com",
        "war@gmail.com",
        "warr@gmail.com",
        "warre@gmail.com",
        "warrenloantonio@gmail.com",
        "warrenquizanocos@gmail.com",
    }
    assert len(audits) == 6 * LOGIN_DAYS


@pytest.mark.parametrize(
    "first_names, middle_names, last_names",
    [
        ({"Warren"}, {"Lo"}, {"Nocos"}),
        ({"Lou", "Rica"}, {"Lo"}, {"Nocos"}),
        ({"Warren"}, {"Vera", "Wevick"}, {"Nocos", "Sa"}),
        ({"Tina", "Warren"}, {"Lo", "Loius"}, {"Prex", "Nocos", "Kortana"}),
        ({"Nobody"}, {"Lo"}, {"Nocos"}),
    ],
)
def test_non_empty_filters_match_oracle(populated, login_audit_service, first_names, middle_names, last_names):
    audits = login_audit_service.find_filtered_login_audits(
        first_names=first_names, middle_names=middle_names, last_names=last_names
    )
    assert audits == brute_force(populated.all_audits(), first_names, middle_names, last_names)


@pytest.mark.parametrize("omitted", ["first_names", "middle_names", "last_names"])
@pytest.mark.parametrize("empty", [None, (), set()])
def test_omitted_field_places_no_constraint(populated, login_audit_service, omitted, empty):
    filters = {"first_names": {"Warren"}, "middle_names": {"Lo"}, "last_names": {"Nocos", "Sa"}}
    with_empty = dict(filters, **{omitted: empty})
    without_term = {name: values for name, values in filters.items() if name != omitted}

    assert login_audit_service.find_filtered_login_audits(
        **with_empty
    ) == login_audit_service.find_filtered_login_audits(**without_term)


def test_no_filters_returns_every_row(populated, login_audit_service):
    audits = login_audit_service.find_filtered_login_audits()
    assert len(audits) == len(FIXTURE_ACCOUNTS) * LOGIN_DAYS
    assert audits == sorted(audits)


def test_date_bounds_are_inclusive(account_service, audit_repository, login_audit_service):
    account_service.save_account(
        SaveAccountInput(email="edge@gmail.com", password="pw", first_name="Ed", last_name="Ge")
    )
    window = DateRange.from_dates(date(2016, 9, 10), date(2016, 9, 12), ZONE)
    millisecond = timedelta(milliseconds=1)
    for moment in (
        window.start - millisecond,
        window.start,
        window.end,
        window.end + millisecond,
    ):
        audit_repository.create_audit("edge@gmail.com", moment)

    audits = login_audit_service.find_filtered_login_audits(start=date(2016, 9, 10), end=date(2016, 9, 12))

    assert [audit.login_time for audit in audits] == [window.start, window.end]


def test_from_dates_spans_local_calendar_days():
    window = DateRange.from_dates(date(2016, 9, 1), date(2016, 9, 30), ZONE)
    assert window.start == datetime(2016, 9, 1, tzinfo=ZONE)
    assert window.end == datetime.combine(date(2016, 9, 30), END_OF_DAY, tzinfo=ZONE)


def test_from_dates_without_zone_uses_server_local_zone():
    window = DateRange.from_dates(date(2016, 9, 1), None, None)
    assert window.start.tzinfo is not None
    assert window.start.replace(tzinfo=None) == datetime(2016, 9, 1)
    assert window.end is None


def test_equal_bounds_are_accepted():
    moment = datetime(2016, 9, 1, tzinfo=ZONE)
    assert DateRange(moment, moment).contains(moment)


@pytest.mark.parametrize(
    "call",
    [
        lambda service: service.find_filtered_login_audits(start=date(2016, 9, 2), end=date(2016, 9, 1)),
        lambda service: service.find_filtered_login_counts(start=date(2016, 9, 2), end=date(2016, 9, 1)),
        lambda service: service.find_accounts_with_login_activity(date(2016, 9, 2), date(2016, 9, 1)),
    ],
)
def test_start_after_end_raises_before_querying(populated, login_audit_service, call):
    with pytest.raises(InvalidRange, match="Start date is after end date"):
        call(login_audit_service)
    assert populated.queries == 0


@pytest.mark.parametrize("size", [1, 7, 30, 45, 64])
def test_pages_concatenate_to_the_unpaged_result(populated, login_audit_service, size):
    filters = {"middle_names": {"Lo"}, "last_names": {"Nocos", "Prex"}}
    unpaged = login_audit_service.find_filtered_login_audits(**filters)

    collected = []
    number = 0
    while True:
        page = login_audit_service.find_filtered_login_audits(**filters, page=Page(number, size))
        if not page:
            break
        assert len(page) <= size
        collected.extend(page)
        number += 1

    assert collected == unpaged
    assert len({audit.audit_id for audit in collected}) == len(unpaged)


def test_page_size_zero_is_an_empty_page(populated, login_audit_service):
    assert login_audit_service.find_filtered_login_audits(page=Page(0, 0)) == []
    assert login_audit_service.find_accounts_with_login_activity(page=Page(0, 0)) == []
    assert login_audit_service.find_distinct_login_dates(Page(0, 0)) == []


def test_unbounded_page_holds_everything_on_page_zero():
    rows = list(range(5))
    assert Page().apply(rows) == rows
    assert Page(1).apply(rows) == []
    assert Page(1, 2).apply(rows) == [2, 3]
    assert Page(2, 2).apply(rows) == [4]


@pytest.mark.parametrize("number, size", [(-1, None), (0, -1)])
def test_negative_pages_are_rejected(number, size):
    with pytest.raises(InvalidPage):
        Page(number, size)


def _audit(email: str, day: int) -> LoginAudit:
    account = Account(account_id=1, email=email, first_name="F", last_name="L")
    return LoginAudit(account=account, login_time=datetime(2016, 9, day, tzinfo=ZONE))


def test_aggregate_by_email_counts_and_orders_keys():
    audits = [
        _audit("zed@gmail.com", 1),
        _audit("amy@gmail.com", 1),
        _audit("zed@gmail.com", 2),
        _audit("amy@gmail.com", 3),
        _audit("amy@gmail.com", 4),
    ]

    counts = aggregate_by_email(audits)

    assert counts == {"amy@gmail.com": 3, "zed@gmail.com": 2}
    assert list(counts) == ["amy@gmail.com", "zed@gmail.com"]


def test_filtered_counts_leave_out_accounts_without_rows(populated, login_audit_service):
    counts = login_audit_service.find_filtered_login_counts(
        start=date(2016, 9, 5),
        end=date(2016, 9, 14),
        first_names={"Warren"},
        last_names={"Sa", "Prex"},
    )
    assert counts == {"warrenloprex@gmail.com": 10, "warrenlosa@gmail.com": 10}


def test_counts_paginate_audit_rows_before_counting(populated, login_audit_service):
    counts = login_audit_service.find_filtered_login_counts(
        emails={"wa@gmail.com", "war@gmail.com"}, page=Page(0, 40)
    )
    assert counts == {"wa@gmail.com": 30, "war@gmail.com": 10}


def test_distinct_accounts_within_window(populated, login_audit_service, audit_repository):
    audit_repository.create_audit("wa@gmail.com", datetime(2016, 10, 3, 12, tzinfo=ZONE))

    october = login_audit_service.find_accounts_with_login_activity(date(2016, 10, 1), date(2016, 10, 31))
    everyone = login_audit_service.find_accounts_with_login_activity()

    assert [account.email for account in october] == ["wa@gmail.com"]
    assert [account.email for account in everyone] == sorted(email for email, *_ in FIXTURE_ACCOUNTS)


def test_distinct_accounts_open_ended_bounds(populated, login_audit_service):
    assert login_audit_service.find_accounts_with_login_activity(start=date(2016, 10, 1)) == []
    assert len(login_audit_service.find_accounts_with_login_activity(end=date(2016, 9, 1))) == len(
        FIXTURE_ACCOUNTS
    )


def test_distinct_login_dates_are_local_and_ascending(populated, login_audit_service):
    dates = login_audit_service.find_distinct_login_dates()
    assert dates == [SEPTEMBER_START + timedelta(days=offset) for offset in range(LOGIN_DAYS)]

    assert login_audit_service.find_distinct_login_dates(Page(2, 7)) == dates[14:21]


def test_distinct_local_dates_stops_consuming_once_page_is_full():
    consumed = []

    def timestamps():
        for day in range(1, 31):
            moment = datetime(2016, 9, day, 1, tzinfo=ZONE)
            consumed.append(moment)
            yield moment
            yield moment + timedelta(hours=2)

    assert distinct_local_dates(timestamps(), ZONE, Page(0, 3)) == [
        date(2016, 9, 1),
        date(2016, 9, 2),
        date(2016, 9, 3),
    ]
    assert len(consumed) == 3


def test_to_sql_for_empty_filter_is_true():
    assert LoginAuditFilter().to_sql() == ("TRUE", [])


def test_to_sql_builds_or_groups_joined_by_and():
    window = DateRange.from_dates(date(2016, 9, 1), date(2016, 9, 30), ZONE)
    where_sql, params = LoginAuditFilter(
        date_range=window,
        first_names=["Warren", "Prex"],
        middle_names=None,
        last_names={"Nocos"},
    ).to_sql()

    assert where_sql == (
        "l.login_time >= %s AND l.login_time <= %s"
        " AND (a.first_name = %s OR a.first_name = %s)"
        " AND (a.last_name = %s)"
    )
    assert params == [window.start, window.end, "Prex", "Warren", "Nocos"]


def test_none_collections_normalise_to_empty_sets():
    audit_filter = LoginAuditFilter(emails=None, first_names=None, middle_names=None, last_names=None)
    assert audit_filter.emails == frozenset()
    assert audit_filter.identity_terms() == []


def test_single_string_is_one_value_not_its_characters(populated, login_audit_service):
    audit_filter = LoginAuditFilter(emails="wa@gmail.com", first_names="Warren")
    assert audit_filter.emails == frozenset({"wa@gmail.com"})
    assert audit_filter.first_names == frozenset({"Warren"})

    audits = login_audit_service.find_filtered_login_audits(emails="wa@gmail.com", first_names="Warren")

    assert len(audits) == LOGIN_DAYS
    assert {audit.account.email for audit in audits} == {"wa@gmail.com"}
