"""
Constants used across the training tracker.
"""

# Session tokens
SESSION_TOKEN_EXPIRATION_DAYS = 7

# Input rules shared by registration, login and password changes
MIN_PASSWORD_LENGTH = 6
MIN_USERNAME_LENGTH = 3

# Rolling windows for aggregates (days)
WEEKLY_WINDOW_DAYS = 7
MONTHLY_WINDOW_DAYS = 30

# Member profile
RECENT_SESSIONS_LIMIT = 10

# Team invite codes
INVITE_CODE_LENGTH = 8
INVITE_CODE_ATTEMPTS = 5

# Provider user listing (admin scripts)
PROVIDER_PAGE_SIZE = 100
PROVIDER_MAX_PAGES = 1000
