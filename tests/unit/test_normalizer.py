"""Unit tests for raw document normalization."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from landshare.normalization import (
    InvestmentOrigin,
    InvestmentSource,
    InvestmentStatus,
    RecordKind,
    UserStatus,
    coerce_number,
    normalize,
    normalize_email,
    normalize_investment,
    normalize_ownership,
    normalize_user,
    parse_timestamp,
)
from landshare.normalization.reference_data import AREA_KEYS, USER_FIELDS

_DEFAULT_VALUES = ("", 0.0, None, [], "unknown", "other", "organic_purchase", "investments", "investment_requests")


def test_normalize_email_trims_and_lowercases():
    assert normalize_email("  Alice@Example.COM ") == "alice@example.com"
    assert normalize_email(None) == ""
    assert normalize_email(42) == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1500", 1500.0),
        (" 12.5 ", 12.5),
        (300, 300.0),
        ("abc", 0.0),
        (None, 0.0),
        (float("nan"), 0.0),
        (float("inf"), 0.0),
        (True, 0.0),
        ({"nested": 1}, 0.0),
    ],
)
def test_coerce_number_never_raises(value, expected):
    assert coerce_number(value) == expected


def test_parse_timestamp_variants():
    expected = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert parse_timestamp("2024-01-02T03:04:05Z") == expected
    assert parse_timestamp(expected.timestamp()) == expected
    assert parse_timestamp(expected.timestamp() * 1000) == expected
    assert parse_timestamp({"seconds": int(expected.timestamp()), "nanoseconds": 0}) == expected
    assert parse_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == expected
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


@pytest.mark.parametrize("kind", list(RecordKind))
def test_normalize_empty_mapping_returns_defaults(kind):
    record = normalize(kind, {})
    assert record.id == ""
    for value in record.to_dict().values():
        assert value in _DEFAULT_VALUES


def test_normalize_non_mapping_input_is_treated_as_empty():
    user = normalize(RecordKind.USER, None)  # type: ignore[arg-type]
    assert user.email == ""
    assert user.status is UserStatus.UNKNOWN


def test_normalize_rejects_unknown_kind():
    with pytest.raises(ValueError):
        normalize("plot", {})


@pytest.mark.parametrize("area_key", AREA_KEYS)
def test_area_synonyms_produce_identical_canonical_output(area_key):
    base = {"id": "i1", "userId": "u1", "plotId": "p1", "amount_paid": 3000, "sqm_purchased": 30}
    renamed = {key: value for key, value in base.items() if key != "sqm_purchased"}
    renamed[area_key] = 30

    assert normalize_investment(renamed) == normalize_investment(base)


@pytest.mark.parametrize("phone_key", USER_FIELDS["phone"].synonyms)
def test_phone_synonyms_produce_identical_canonical_output(phone_key):
    base = {"id": "u1", "email": "a@x.com", "phone": "0801"}
    renamed = {"id": "u1", "email": "a@x.com", phone_key: "0801"}

    assert normalize_user(renamed) == normalize_user(base)


def test_ranked_synonym_wins_over_later_synonym():
    investment = normalize_investment({"sqm": 10, "sqm_purchased": 25})
    assert investment.area_units == 25.0


def test_empty_ranked_synonym_falls_through_to_next():
    investment = normalize_investment({"sqm_purchased": "", "sqm": "40", "amount_paid": 0, "totalAmount": "900"})
    assert investment.area_units == 40.0
    assert investment.amount_paid == 900.0


def test_phone_concept_scan_finds_unlisted_key():
    user = normalize_user({"email": "a@x.com", "whatsappTelephoneLine": " 0803 "})
    assert user.phone == "0803"


def test_concept_scan_skips_email_keys():
    user = normalize_user({"contactEmail": "c@x.com", "email": "a@x.com"})
    assert user.phone == ""


def test_address_concept_scan_skips_wallet_addresses():
    user = normalize_user({"walletAddress": "0xabc", "postalAddress": "1 Main St"})
    assert user.address == "1 Main St"


def test_user_email_is_normalized():
    user = normalize_user({"id": "u1", "Email": "  Bob@X.com "})
    assert user.email == "bob@x.com"


def test_user_display_name_falls_back_to_first_and_last():
    user = normalize_user({"firstName": "Ada", "lastName": "Obi"})
    assert user.display_name == "Ada Obi"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"status": "active"}, UserStatus.ACTIVE),
        ({"status": "Active "}, UserStatus.ACTIVE),
        ({"status": "disabled"}, UserStatus.INACTIVE),
        ({"status": "banned"}, UserStatus.INACTIVE),
        ({"accountStatus": "blocked"}, UserStatus.INACTIVE),
        ({"isActive": True}, UserStatus.ACTIVE),
        ({"isActive": False}, UserStatus.INACTIVE),
        ({"status": "active", "isActive": False}, UserStatus.ACTIVE),
        ({"isActive": "yes"}, UserStatus.UNKNOWN),
        ({"status": "pending", "isActive": True}, UserStatus.UNKNOWN),
        ({"status": "  ", "isActive": True}, UserStatus.ACTIVE),
        ({}, UserStatus.UNKNOWN),
    ],
)
def test_user_status_is_three_valued(raw, expected):
    assert normalize_user(raw).status is expected


def test_negative_amounts_clamp_to_zero():
    investment = normalize_investment({"amount_paid": -500, "sqm": "-3"})
    assert investment.amount_paid == 0.0
    assert investment.area_units == 0.0


def test_investment_status_source_and_links():
    investment = normalize(
        RecordKind.INVESTMENT_REQUEST,
        {
            "id": "r1",
            "status": "Approved",
            "source": "manual_admin_entry",
            "investmentId": "i9",
            "user_email": "A@X.com",
            "email": "other@x.com",
            "userId": "u1",
        },
    )
    assert investment.status is InvestmentStatus.APPROVED
    assert investment.source is InvestmentSource.MANUAL_ADMIN_ENTRY
    assert investment.linked_investment_id == "i9"
    assert investment.origin is InvestmentOrigin.REQUEST
    assert investment.user_email == "a@x.com"
    assert investment.candidate_emails == ("a@x.com", "other@x.com")
    assert investment.candidate_user_ids == ("u1",)


def test_normalize_ownership_reads_migrated_row():
    ownership = normalize_ownership(
        {
            "id": "o1",
            "userId": "u1",
            "plotId": "p1",
            "investmentId": "i1",
            "sqm_owned": 300,
            "amountPaid": 3000000,
            "source": "migration",
        }
    )
    assert ownership.investment_id == "i1"
    assert ownership.area_owned == 300.0
    assert ownership.amount_paid == 3000000.0
    assert ownership.source is InvestmentSource.MIGRATION
