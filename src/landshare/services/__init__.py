"""Reconciliation services: portfolio aggregation, duplicate merging, and migrations."""

from .audit import AuditLog
from .duplicates import DuplicateUserService, MergeResult, detect_duplicates, merge_users
from .investments import ManualInvestmentResult, ManualInvestmentService
from .migration import MigrationReport, MigrationStatus, OwnershipMigration
from .portfolio import PortfolioService, PortfolioSummary, aggregate

__all__ = [
    "AuditLog",
    "DuplicateUserService",
    "ManualInvestmentResult",
    "ManualInvestmentService",
    "MergeResult",
    "MigrationReport",
    "MigrationStatus",
    "OwnershipMigration",
    "PortfolioService",
    "PortfolioSummary",
    "aggregate",
    "detect_duplicates",
    "merge_users",
]
