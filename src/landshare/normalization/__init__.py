"""Normalization of drifting raw documents into canonical records."""

from .identity import matches, matches_email, matches_user_id
from .normalizer import (
    coerce_number,
    normalize,
    normalize_email,
    normalize_investment,
    normalize_ownership,
    normalize_user,
    parse_timestamp,
)
from .schema import (
    CanonicalInvestment,
    CanonicalOwnership,
    CanonicalUser,
    DuplicateGroup,
    InvestmentOrigin,
    InvestmentSource,
    InvestmentStatus,
    RecordKind,
    UserStatus,
)

__all__ = [
    "CanonicalInvestment",
    "CanonicalOwnership",
    "CanonicalUser",
    "DuplicateGroup",
    "InvestmentOrigin",
    "InvestmentSource",
    "InvestmentStatus",
    "RecordKind",
    "UserStatus",
    "coerce_number",
    "matches",
    "matches_email",
    "matches_user_id",
    "normalize",
    "normalize_email",
    "normalize_investment",
    "normalize_ownership",
    "normalize_user",
    "parse_timestamp",
]
