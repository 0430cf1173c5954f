"""Account service: account management, authentication and login auditing."""
