"""Unit tests for matching investment-like records to users."""

from __future__ import annotations

import pytest

from landshare.normalization import matches, matches_email, matches_user_id, normalize_investment, normalize_ownership


@pytest.mark.parametrize(
    "record",
    [
        {"userId": "u1"},
        {"user_id": "u1", "userEmail": "stale@x.com"},
        {"uid": "u1"},
    ],
)
def test_id_branch_matches_without_email(record):
    assert matches(record, "u1", "a@x.com")
    assert matches(normalize_investment(record), "u1", "a@x.com")


@pytest.mark.parametrize(
    "email_key",
    ["userEmail", "user_email", "email", "Email", "USER_EMAIL", "useremail", "emailAddress", "email_address"],
)
def test_email_branch_matches_any_email_field(email_key):
    record = {"userId": "stale-id", email_key: " A@X.COM"}
    assert matches(record, "u1", "a@x.com")
    assert matches(normalize_investment(record), "u1", "A@x.com ")


def test_secondary_email_field_matches_on_canonical_record():
    record = normalize_investment({"userEmail": "first@x.com", "email_address": "a@x.com"})
    assert record.user_email == "first@x.com"
    assert matches(record, "", "a@x.com")


def test_no_match_when_both_branches_fail():
    record = {"userId": "u2", "userEmail": "b@x.com"}
    assert not matches(record, "u1", "a@x.com")


def test_empty_targets_never_match_empty_fields():
    record = {"userId": "", "userEmail": ""}
    assert not matches(record, "", "")
    assert not matches_user_id(record, None)
    assert not matches_email(record, None)


def test_ownership_records_match_by_id():
    ownership = normalize_ownership({"user_id": "u1", "investmentId": "i1"})
    assert matches(ownership, "u1", None)


def test_matching_or_is_the_union_of_branches():
    records = [
        {"userId": "u1", "userEmail": "a@x.com"},
        {"userId": "u1", "userEmail": "b@x.com"},
        {"userId": "u2", "userEmail": "a@x.com"},
        {"userId": "u2", "userEmail": "b@x.com"},
    ]
    for record in records:
        expected = matches_user_id(record, "u1") or matches_email(record, "a@x.com")
        assert matches(record, "u1", "a@x.com") is expected


def test_unsupported_record_types_do_not_match():
    assert not matches(["u1"], "u1", "a@x.com")  # type: ignore[arg-type]
