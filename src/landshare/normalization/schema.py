"""Canonical schema definitions for normalized platform records.

Raw documents in the store drift in field naming and casing; everything the
reconciliation services compute runs on these fixed shapes instead.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Tuple

RawRecord = Mapping[str, Any]


class RecordKind(str, Enum):
    """Supported normalization targets."""

    USER = "user"
    INVESTMENT = "investment"
    INVESTMENT_REQUEST = "investment_request"
    OWNERSHIP = "ownership"


class UserStatus(str, Enum):
    """Three-valued account status; ``UNKNOWN`` is not the same as ``INACTIVE``."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    UNKNOWN = "unknown"


class InvestmentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    ACTIVE = "active"
    OTHER = "other"


class InvestmentSource(str, Enum):
    ORGANIC_PURCHASE = "organic_purchase"
    MANUAL_ADMIN_ENTRY = "manual_admin_entry"
    MIGRATION = "migration"


class InvestmentOrigin(str, Enum):
    """Collection family an investment-like event was read from."""

    LEDGER = "investments"
    REQUEST = "investment_requests"


def _serialise(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, tuple):
        return [_serialise(item) for item in value]
    return value


@dataclass(slots=True)
class _CanonicalRecord:
    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly dict (enums as values, datetimes as ISO strings)."""

        return {key: _serialise(value) for key, value in asdict(self).items()}


@dataclass(slots=True)
class CanonicalUser(_CanonicalRecord):
    """Normalized ``user_profiles`` document.

    Attributes:
        id: Document id; authoritative identity.
        email: Lowercased, trimmed email; the natural key for duplicate detection.
        display_name: Full name, or first + last name when only those exist.
        status: Three-valued account status.
        created_at: Signup timestamp (UTC) when one could be parsed.
        last_login: Last sign-in timestamp (UTC) when one could be parsed.
    """

    id: str = ""
    email: str = ""
    display_name: str = ""
    phone: str = ""
    address: str = ""
    occupation: str = ""
    bank_name: str = ""
    bank_account: str = ""
    status: UserStatus = UserStatus.UNKNOWN
    created_at: datetime | None = None
    last_login: datetime | None = None


@dataclass(slots=True)
class CanonicalInvestment(_CanonicalRecord):
    """Normalized investment-like event from ``investments`` or ``investment_requests``.

    ``candidate_user_ids`` and ``candidate_emails`` keep every id/email value the
    raw record carried, since older writers populated different fields.
    """

    id: str = ""
    user_id: str = ""
    user_email: str = ""
    plot_id: str = ""
    project_id: str = ""
    area_units: float = 0.0
    amount_paid: float = 0.0
    price_per_unit: float = 0.0
    status: InvestmentStatus = InvestmentStatus.OTHER
    payment_method: str = ""
    source: InvestmentSource = InvestmentSource.ORGANIC_PURCHASE
    created_at: datetime | None = None
    linked_investment_id: str = ""
    origin: InvestmentOrigin = InvestmentOrigin.LEDGER
    user_name: str = ""
    plot_name: str = ""
    project_name: str = ""
    investment_type: str = ""
    original_request_id: str = ""
    candidate_user_ids: Tuple[str, ...] = ()
    candidate_emails: Tuple[str, ...] = ()


@dataclass(slots=True)
class CanonicalOwnership(_CanonicalRecord):
    """Normalized ``plot_ownership`` row; at most one exists per ``investment_id``."""

    id: str = ""
    user_id: str = ""
    user_email: str = ""
    plot_id: str = ""
    project_id: str = ""
    investment_id: str = ""
    area_owned: float = 0.0
    amount_paid: float = 0.0
    price_per_unit: float = 0.0
    status: str = ""
    source: InvestmentSource = InvestmentSource.ORGANIC_PURCHASE
    created_at: datetime | None = None
    user_name: str = ""
    plot_name: str = ""
    project_name: str = ""
    candidate_user_ids: Tuple[str, ...] = ()
    candidate_emails: Tuple[str, ...] = ()


@dataclass(slots=True)
class DuplicateGroup:
    """Users sharing one normalized email; only built when there are 2+ members."""

    normalized_email: str
    members: list[CanonicalUser] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "normalized_email": self.normalized_email,
            "members": [member.to_dict() for member in self.members],
        }


__all__ = [
    "CanonicalInvestment",
    "CanonicalOwnership",
    "CanonicalUser",
    "DuplicateGroup",
    "InvestmentOrigin",
    "InvestmentSource",
    "InvestmentStatus",
    "RawRecord",
    "RecordKind",
    "UserStatus",
]
