"""Prometheus instruments for the account service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

LOGIN_AUDITS = Counter(
    "account_login_audits_total",
    "Successful logins recorded in the login audit.",
)

LOGIN_AUDIT_QUERY_SECONDS = Histogram(
    "account_login_audit_query_seconds",
    "Latency of login-audit read queries.",
    ["operation"],
)

LOGIN_DATES_CACHE_LOOKUPS = Counter(
    "account_login_dates_cache_lookups_total",
    "Login-dates cache lookups by outcome.",
    ["outcome"],
)
