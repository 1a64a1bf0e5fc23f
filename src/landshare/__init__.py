"""landshare: record reconciliation and migration engine for the land-share back office.

This package normalizes drifting user and investment documents, aggregates
portfolios without double-counting, merges duplicate users, and backfills plot
ownership rows.
"""
