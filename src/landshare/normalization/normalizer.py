"""Schema normalization for raw platform documents.

Maps an arbitrary raw record (any mapping of keys to values, as stored) onto
one of the canonical shapes in :mod:`landshare.normalization.schema`. Field
resolution is table driven (see :mod:`landshare.normalization.reference_data`)
and evaluated by the single generic resolver :func:`resolve_field`.

Normalization never raises on record content: missing or malformed values
resolve to ``0``, ``""``, ``None`` or ``UNKNOWN``.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Tuple

from landshare.normalization.reference_data import (
    EMAIL_BEARING_KEYS,
    INACTIVE_STATUS_VALUES,
    INVESTMENT_FIELDS,
    MANUAL_SOURCE_VALUES,
    MIGRATION_SOURCE_VALUES,
    OWNERSHIP_FIELDS,
    USER_FIELDS,
    USER_ID_BEARING_KEYS,
    FieldRule,
)
from landshare.normalization.schema import (
    CanonicalInvestment,
    CanonicalOwnership,
    CanonicalUser,
    InvestmentOrigin,
    InvestmentSource,
    InvestmentStatus,
    RecordKind,
    UserStatus,
)

_EPOCH_MILLIS_THRESHOLD = 1e11
_STATUS_MAP = {
    "pending": InvestmentStatus.PENDING,
    "approved": InvestmentStatus.APPROVED,
    "completed": InvestmentStatus.COMPLETED,
    "active": InvestmentStatus.ACTIVE,
}


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------


def normalize_email(value: Any) -> str:
    """Return the comparison form of an email: trimmed and lowercased.

    This is the only form emails are compared in anywhere in landshare.
    """

    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def coerce_number(value: Any) -> float:
    """Parse ``value`` as a float; anything unparsable or non-finite becomes ``0.0``."""

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def clean_string(value: Any) -> str:
    """Return a trimmed string for scalar values; containers and booleans become ``""``."""

    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(int(value)) if value.is_integer() else str(value)
    return ""


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of stored timestamps to an aware UTC ``datetime``.

    Accepts datetimes (including Firestore's ``DatetimeWithNanoseconds``), ISO-8601
    strings, epoch seconds or milliseconds, and serialized ``{"seconds": ...}``
    timestamp maps.
    """

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0))
        if seconds is None:
            return None
        return _from_epoch(coerce_number(seconds) + coerce_number(nanos) / 1e9)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        if not math.isfinite(number) or number <= 0:
            return None
        if number > _EPOCH_MILLIS_THRESHOLD:
            number = number / 1000.0
        return _from_epoch(number)
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        if cleaned.endswith("Z"):
            cleaned = f"{cleaned[:-1]}+00:00"
        try:
            return parse_timestamp(datetime.fromisoformat(cleaned))
        except ValueError:
            return None
    return None


def _from_epoch(seconds: float) -> datetime | None:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Generic field resolution
# ---------------------------------------------------------------------------


def _has_text(value: Any) -> bool:
    return bool(clean_string(value))


def _is_positive(value: Any) -> bool:
    return coerce_number(value) > 0


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _has_timestamp(value: Any) -> bool:
    return parse_timestamp(value) is not None


def resolve_field(raw: Mapping[str, Any], rule: FieldRule, accept: Callable[[Any], bool] = _has_text) -> Any:
    """Return the first accepted value for ``rule`` in ``raw``, or ``None``.

    Ranked synonyms are tried in order. When none carries an accepted value, every
    raw key is scanned (in stored order) for a concept token, case-insensitively.
    """

    for key in rule.synonyms:
        if key in raw and accept(raw[key]):
            return raw[key]
    if not rule.concept_tokens:
        return None
    for key, value in raw.items():
        lowered = str(key).lower()
        if not any(token in lowered for token in rule.concept_tokens):
            continue
        if any(token in lowered for token in rule.exclude_tokens):
            continue
        if accept(value):
            return value
    return None


def _text(raw: Mapping[str, Any], rule: FieldRule) -> str:
    return clean_string(resolve_field(raw, rule))


def _number(raw: Mapping[str, Any], rule: FieldRule) -> float:
    return max(0.0, coerce_number(resolve_field(raw, rule, _is_positive)))


def _timestamp(raw: Mapping[str, Any], rule: FieldRule) -> datetime | None:
    return parse_timestamp(resolve_field(raw, rule, _has_timestamp))


def _collect(raw: Mapping[str, Any], keys: Iterable[str], transform: Callable[[Any], str]) -> Tuple[str, ...]:
    values: list[str] = []
    for key in keys:
        if key not in raw:
            continue
        value = transform(raw[key])
        if value and value not in values:
            values.append(value)
    return tuple(values)


def _as_mapping(raw: Any) -> Mapping[str, Any]:
    return raw if isinstance(raw, Mapping) else {}


# ---------------------------------------------------------------------------
# Status and source policies
# ---------------------------------------------------------------------------


def user_status(raw: Mapping[str, Any]) -> UserStatus:
    """Resolve the three-valued status of a raw user document."""

    raw = _as_mapping(raw)
    text = _text(raw, USER_FIELDS["status"]).lower()
    if text == "active":
        return UserStatus.ACTIVE
    if text in INACTIVE_STATUS_VALUES:
        return UserStatus.INACTIVE
    if text:
        # An unrecognised string status still outranks the boolean flag.
        return UserStatus.UNKNOWN
    flag = resolve_field(raw, USER_FIELDS["is_active"], _is_bool)
    if flag is not None:
        return UserStatus.ACTIVE if flag else UserStatus.INACTIVE
    return UserStatus.UNKNOWN


def investment_status(value: Any) -> InvestmentStatus:
    return _STATUS_MAP.get(clean_string(value).lower(), InvestmentStatus.OTHER)


def investment_source(value: Any) -> InvestmentSource:
    lowered = clean_string(value).lower()
    if lowered in MANUAL_SOURCE_VALUES:
        return InvestmentSource.MANUAL_ADMIN_ENTRY
    if lowered in MIGRATION_SOURCE_VALUES:
        return InvestmentSource.MIGRATION
    return InvestmentSource.ORGANIC_PURCHASE


# ---------------------------------------------------------------------------
# Record normalizers
# ---------------------------------------------------------------------------


def normalize_user(raw: Mapping[str, Any]) -> CanonicalUser:
    """Normalize a ``user_profiles`` document."""

    raw = _as_mapping(raw)
    display_name = _text(raw, USER_FIELDS["display_name"])
    if not display_name:
        first = _text(raw, USER_FIELDS["first_name"])
        last = _text(raw, USER_FIELDS["last_name"])
        display_name = f"{first} {last}".strip()

    return CanonicalUser(
        id=clean_string(raw.get("id")) or clean_string(raw.get("uid")),
        email=normalize_email(resolve_field(raw, USER_FIELDS["email"])),
        display_name=display_name,
        phone=_text(raw, USER_FIELDS["phone"]),
        address=_text(raw, USER_FIELDS["address"]),
        occupation=_text(raw, USER_FIELDS["occupation"]),
        bank_name=_text(raw, USER_FIELDS["bank_name"]),
        bank_account=_text(raw, USER_FIELDS["bank_account"]),
        status=user_status(raw),
        created_at=_timestamp(raw, USER_FIELDS["created_at"]),
        last_login=_timestamp(raw, USER_FIELDS["last_login"]),
    )


def normalize_investment(
    raw: Mapping[str, Any],
    *,
    origin: InvestmentOrigin = InvestmentOrigin.LEDGER,
) -> CanonicalInvestment:
    """Normalize an ``investments`` or ``investment_requests`` document."""

    raw = _as_mapping(raw)
    fields = INVESTMENT_FIELDS
    return CanonicalInvestment(
        id=clean_string(raw.get("id")),
        user_id=_text(raw, fields["user_id"]),
        user_email=normalize_email(resolve_field(raw, fields["user_email"])),
        plot_id=_text(raw, fields["plot_id"]),
        project_id=_text(raw, fields["project_id"]),
        area_units=_number(raw, fields["area_units"]),
        amount_paid=_number(raw, fields["amount_paid"]),
        price_per_unit=_number(raw, fields["price_per_unit"]),
        status=investment_status(resolve_field(raw, fields["status"])),
        payment_method=_text(raw, fields["payment_method"]),
        source=investment_source(resolve_field(raw, fields["source"])),
        created_at=_timestamp(raw, fields["created_at"]),
        linked_investment_id=_text(raw, fields["linked_investment_id"]),
        origin=origin,
        user_name=_text(raw, fields["user_name"]),
        plot_name=_text(raw, fields["plot_name"]),
        project_name=_text(raw, fields["project_name"]),
        investment_type=_text(raw, fields["investment_type"]),
        original_request_id=_text(raw, fields["original_request_id"]),
        candidate_user_ids=_collect(raw, USER_ID_BEARING_KEYS, clean_string),
        candidate_emails=_collect(raw, EMAIL_BEARING_KEYS, normalize_email),
    )


def normalize_ownership(raw: Mapping[str, Any]) -> CanonicalOwnership:
    """Normalize a ``plot_ownership`` document."""

    raw = _as_mapping(raw)
    fields = OWNERSHIP_FIELDS
    return CanonicalOwnership(
        id=clean_string(raw.get("id")),
        user_id=_text(raw, fields["user_id"]),
        user_email=normalize_email(resolve_field(raw, fields["user_email"])),
        plot_id=_text(raw, fields["plot_id"]),
        project_id=_text(raw, fields["project_id"]),
        investment_id=_text(raw, fields["investment_id"]),
        area_owned=_number(raw, fields["area_owned"]),
        amount_paid=_number(raw, fields["amount_paid"]),
        price_per_unit=_number(raw, fields["price_per_unit"]),
        status=_text(raw, fields["status"]).lower(),
        source=investment_source(resolve_field(raw, fields["source"])),
        created_at=_timestamp(raw, fields["created_at"]),
        user_name=_text(raw, fields["user_name"]),
        plot_name=_text(raw, fields["plot_name"]),
        project_name=_text(raw, fields["project_name"]),
        candidate_user_ids=_collect(raw, USER_ID_BEARING_KEYS, clean_string),
        candidate_emails=_collect(raw, EMAIL_BEARING_KEYS, normalize_email),
    )


def normalize(
    kind: RecordKind | str, raw: Mapping[str, Any]
) -> CanonicalUser | CanonicalInvestment | CanonicalOwnership:
    """Normalize ``raw`` into the canonical shape for ``kind``.

    Args:
        kind: Target shape (``user``, ``investment``, ``investment_request`` or ``ownership``).
        raw: Stored document. Non-mapping input is treated as an empty record.

    Returns:
        The canonical record. Content problems never raise; only an unknown
        ``kind`` does.
    """

    resolved = RecordKind(kind)
    if resolved is RecordKind.USER:
        return normalize_user(raw)
    if resolved is RecordKind.INVESTMENT:
        return normalize_investment(raw)
    if resolved is RecordKind.INVESTMENT_REQUEST:
        return normalize_investment(raw, origin=InvestmentOrigin.REQUEST)
    return normalize_ownership(raw)


__all__ = [
    "clean_string",
    "coerce_number",
    "investment_source",
    "investment_status",
    "normalize",
    "normalize_email",
    "normalize_investment",
    "normalize_ownership",
    "normalize_user",
    "parse_timestamp",
    "resolve_field",
    "user_status",
]
