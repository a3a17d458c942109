"""
Single source of truth for database tables that exist after migrations (001–003).

Use these names when writing raw SQL (e.g. TRUNCATE). alembic/env.py asserts the models
match this list.
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = (
    "targets",
    "transfers",
    "acquisition_attempts",
    "confirmed_drop_patterns",
)

# Tables cleared when resetting learned history (TRUNCATE). Targets and transfers are kept.
HISTORY_TABLE_NAMES = (
    "acquisition_attempts",
    "confirmed_drop_patterns",
)
