"""Tests for de-duplicated portfolio aggregation."""

from __future__ import annotations

import pytest

from landshare.errors import NotFoundError
from landshare.services.portfolio import PortfolioService, aggregate, counts_toward_totals, fingerprint
from landshare.normalization import normalize_investment
from landshare.settings import reload_settings
from landshare.store.memory import InMemoryDocumentStore


def _request(**fields):
    base = {"id": "r1", "userEmail": "a@x.com", "amount_paid": 500, "sqm": 10, "status": "approved"}
    base.update(fields)
    return base


def test_request_matching_ledger_fingerprint_counts_once():
    investments = [{"id": "i1", "userEmail": "a@x.com", "amount_paid": 500, "sqm": 10}]
    requests = [_request(userEmail="A@X.com ")]

    summary = aggregate("u1", "a@x.com", investments, requests)

    assert summary.total_amount == 500
    assert summary.total_area == 10
    assert [record.id for record in summary.counted] == ["i1"]


def test_unpromoted_approved_request_is_counted():
    investments = [{"id": "i1", "userId": "u1", "amount_paid": 500, "sqm": 10}]
    requests = [_request(id="r2", amount_paid=700, sqm=14, status="completed")]

    summary = aggregate("u1", "a@x.com", investments, requests)

    assert summary.total_amount == 1200
    assert summary.total_area == 24


@pytest.mark.parametrize(
    "overrides",
    [
        {"status": "pending"},
        {"status": "rejected"},
        {"linkedInvestmentId": "i7"},
        {"investmentId": "i7"},
        {"source": "manual_admin_entry"},
    ],
)
def test_requests_excluded_from_totals(overrides):
    summary = aggregate("u1", "a@x.com", [], [_request(**overrides)])
    assert summary.total_amount == 0
    assert summary.counted == []


def test_history_adds_pending_requests_but_totals_do_not():
    investments = [{"id": "i1", "userId": "u1", "amount_paid": 100, "sqm": 1}]
    requests = [
        _request(id="r-pending", status="pending", amount_paid=50, sqm=2),
        _request(id="r-linked", status="pending", amount_paid=60, sqm=3, linkedInvestmentId="i1"),
        _request(id="r-dup", status="pending", userEmail="", userId="u1", amount_paid=100, sqm=1),
    ]

    summary = aggregate("u1", "a@x.com", investments, requests)

    assert summary.total_amount == 100
    assert [record.id for record in summary.history] == ["i1", "r-pending"]


def test_history_uses_same_fingerprint_rule_as_totals():
    investments = [{"id": "i1", "userEmail": "a@x.com", "amount_paid": 500, "sqm": 10}]
    duplicate_pending = _request(status="pending")

    summary = aggregate("u1", "a@x.com", investments, [duplicate_pending])

    assert [record.id for record in summary.history] == ["i1"]


def test_records_for_other_users_are_ignored():
    investments = [{"id": "i1", "userId": "u2", "userEmail": "b@x.com", "amount_paid": 900, "sqm": 9}]
    summary = aggregate("u1", "a@x.com", investments, [])
    assert summary.total_amount == 0
    assert summary.history == []


def test_malformed_amounts_do_not_poison_the_fold():
    investments = [
        {"id": "i1", "userId": "u1", "amount_paid": "not-a-number", "sqm": "NaN"},
        {"id": "i2", "userId": "u1", "amount_paid": 250, "sqm": 5},
    ]
    summary = aggregate("u1", "", investments, [])
    assert summary.total_amount == 250
    assert summary.total_area == 5
    assert len(summary.counted) == 2


def test_counts_toward_totals_accepts_canonical_records():
    ledger = normalize_investment({"userEmail": "a@x.com", "amount_paid": 500, "sqm": 10})
    request = normalize_investment(_request())
    assert not counts_toward_totals(request, {fingerprint(ledger)})
    assert counts_toward_totals(request, set())


def _store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(
        {
            "user_profiles": {"u1": {"email": "A@X.com", "full_name": "Ada"}},
            "investments": {"i1": {"userId": "u1", "amount_paid": 500, "sqm": 10}},
            "investment_requests": {
                "r1": {"userEmail": "a@x.com", "amount_paid": 300, "sqm": 3, "status": "approved"},
            },
        }
    )


@pytest.mark.anyio
async def test_portfolio_service_summary_and_cache():
    store = _store()
    service = PortfolioService(store, settings=reload_settings(env="local"))

    summary = await service.summary("u1")
    assert summary.total_amount == 800
    assert summary.user_email == "a@x.com"

    await store.add("investments", {"userId": "u1", "amount_paid": 1000, "sqm": 1})
    cached = await service.summary("u1")
    assert cached.total_amount == 800

    service.invalidate("u1")
    refreshed = await service.summary("u1")
    assert refreshed.total_amount == 1800


@pytest.mark.anyio
async def test_portfolio_service_summary_for_email_resolves_user_id():
    service = PortfolioService(_store(), settings=reload_settings(env="local"))

    summary = await service.summary_for_email(" a@X.com")

    assert summary.user_id == "u1"
    assert summary.total_amount == 800


@pytest.mark.anyio
async def test_portfolio_service_unknown_user_raises_not_found():
    service = PortfolioService(_store(), settings=reload_settings(env="local"))
    with pytest.raises(NotFoundError):
        await service.summary("missing")
