"""Identity matching between investment-like records and platform users.

A record belongs to a user when its user id equals the user's id OR any of its
email-bearing fields equals the user's normalized email. The two branches are
independent: records written by older code paths often carry only one of them,
or a stale value in one of them.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Union

from landshare.normalization.normalizer import clean_string, normalize_email
from landshare.normalization.reference_data import EMAIL_BEARING_KEYS, USER_ID_BEARING_KEYS
from landshare.normalization.schema import CanonicalInvestment, CanonicalOwnership

MatchableRecord = Union[CanonicalInvestment, CanonicalOwnership, Mapping[str, Any]]


def _record_user_ids(record: MatchableRecord) -> Iterable[str]:
    if isinstance(record, (CanonicalInvestment, CanonicalOwnership)):
        return (record.user_id, *record.candidate_user_ids)
    if isinstance(record, Mapping):
        return (clean_string(record.get(key)) for key in USER_ID_BEARING_KEYS)
    return ()


def _record_emails(record: MatchableRecord) -> Iterable[str]:
    if isinstance(record, (CanonicalInvestment, CanonicalOwnership)):
        return (record.user_email, *record.candidate_emails)
    if isinstance(record, Mapping):
        return (normalize_email(record.get(key)) for key in EMAIL_BEARING_KEYS)
    return ()


def matches_user_id(record: MatchableRecord, user_id: str | None) -> bool:
    """Return True when one of the record's user-id fields equals ``user_id``."""

    target = clean_string(user_id)
    if not target:
        return False
    return any(candidate == target for candidate in _record_user_ids(record))


def matches_email(record: MatchableRecord, user_email: str | None) -> bool:
    """Return True when one of the record's normalized email fields equals ``user_email``."""

    target = normalize_email(user_email)
    if not target:
        return False
    return any(candidate == target for candidate in _record_emails(record))


def matches(record: MatchableRecord, user_id: str | None, user_email: str | None) -> bool:
    """Decide whether ``record`` belongs to the user identified by ``user_id``/``user_email``.

    Never raises; unrecognized record types simply do not match.
    """

    return matches_user_id(record, user_id) or matches_email(record, user_email)


__all__ = ["MatchableRecord", "matches", "matches_email", "matches_user_id"]
