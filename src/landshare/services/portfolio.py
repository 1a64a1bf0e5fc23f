"""Portfolio aggregation over the two overlapping investment collections.

``investments`` holds authoritative ledger entries; ``investment_requests`` holds
purchase requests, some of which were later promoted into the ledger. A request
only contributes when nothing suggests it already has a ledger twin. The check
is a heuristic fingerprint of (normalized email, amount paid, area) and two
distinct transactions that share all three collapse into one.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Set, Tuple, Union

from landshare.errors import NotFoundError
from landshare.normalization import (
    CanonicalInvestment,
    InvestmentOrigin,
    InvestmentSource,
    InvestmentStatus,
    matches,
    normalize_email,
    normalize_investment,
    normalize_user,
)
from landshare.settings import Settings, get_settings
from landshare.store.document_store import DocumentStore

LOGGER = logging.getLogger(__name__)

Fingerprint = Tuple[str, float, float]
InvestmentLike = Union[CanonicalInvestment, Mapping[str, Any]]

TOTALS_REQUEST_STATUSES: FrozenSet[InvestmentStatus] = frozenset(
    {InvestmentStatus.APPROVED, InvestmentStatus.COMPLETED}
)
HISTORY_REQUEST_STATUSES: FrozenSet[InvestmentStatus] = TOTALS_REQUEST_STATUSES | {InvestmentStatus.PENDING}


@dataclass(slots=True)
class PortfolioSummary:
    """Aggregated portfolio metrics for one user.

    Attributes:
        user_id: Target user id (may be empty when only the email is known).
        user_email: Normalized target email.
        total_amount: Sum of ``amount_paid`` over the events counted toward totals.
        total_area: Sum of ``area_units`` over the same events.
        counted: Events contributing to the totals.
        history: Events shown in the portfolio history; a superset of ``counted``
            that also carries pending requests.
    """

    user_id: str
    user_email: str
    total_amount: float = 0.0
    total_area: float = 0.0
    counted: List[CanonicalInvestment] = field(default_factory=list)
    history: List[CanonicalInvestment] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "user_email": self.user_email,
            "total_amount": self.total_amount,
            "total_area": self.total_area,
            "investment_count": len(self.counted),
            "history": [item.to_dict() for item in self.history],
        }


def fingerprint(record: CanonicalInvestment) -> Fingerprint:
    """Return the heuristic duplicate key shared by both investment sources."""

    return (normalize_email(record.user_email), record.amount_paid, record.area_units)


def _as_investment(item: InvestmentLike, origin: InvestmentOrigin) -> CanonicalInvestment:
    if isinstance(item, CanonicalInvestment):
        return item
    return normalize_investment(item, origin=origin)


def _request_included(
    request: CanonicalInvestment,
    ledger_fingerprints: Set[Fingerprint],
    statuses: FrozenSet[InvestmentStatus],
) -> bool:
    if request.status not in statuses:
        return False
    if request.linked_investment_id:
        return False
    if request.source is InvestmentSource.MANUAL_ADMIN_ENTRY:
        return False
    return fingerprint(request) not in ledger_fingerprints


def counts_toward_totals(request: CanonicalInvestment, ledger_fingerprints: Set[Fingerprint]) -> bool:
    """Return True when an investment request contributes to balance totals."""

    return _request_included(request, ledger_fingerprints, TOTALS_REQUEST_STATUSES)


def shown_in_history(request: CanonicalInvestment, ledger_fingerprints: Set[Fingerprint]) -> bool:
    """Return True when an investment request is listed in portfolio history."""

    return _request_included(request, ledger_fingerprints, HISTORY_REQUEST_STATUSES)


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def aggregate(
    user_id: str | None,
    user_email: str | None,
    investments: Iterable[InvestmentLike],
    requests: Iterable[InvestmentLike],
) -> PortfolioSummary:
    """Compute de-duplicated portfolio totals and history for one user.

    Args:
        user_id: Target user id; records match on id OR normalized email.
        user_email: Target email in any casing.
        investments: ``investments`` collection records, raw or canonical.
        requests: ``investment_requests`` collection records, raw or canonical.

    Returns:
        A :class:`PortfolioSummary`. Malformed amounts or areas count as zero.
    """

    ledger = [_as_investment(item, InvestmentOrigin.LEDGER) for item in investments]
    pending = [_as_investment(item, InvestmentOrigin.REQUEST) for item in requests]
    ledger_fingerprints = {fingerprint(record) for record in ledger}

    summary = PortfolioSummary(user_id=user_id or "", user_email=normalize_email(user_email))
    for record in ledger:
        if not matches(record, user_id, user_email):
            continue
        summary.counted.append(record)
        summary.history.append(record)
    for record in pending:
        if not matches(record, user_id, user_email):
            continue
        if counts_toward_totals(record, ledger_fingerprints):
            summary.counted.append(record)
        if shown_in_history(record, ledger_fingerprints):
            summary.history.append(record)

    summary.total_amount = sum(_finite(record.amount_paid) for record in summary.counted)
    summary.total_area = sum(_finite(record.area_units) for record in summary.counted)
    return summary


class PortfolioService:
    """Load both investment collections and aggregate them per user.

    Summaries are cached per user id; the merger calls :meth:`invalidate` for
    every account it touches.
    """

    def __init__(self, store: DocumentStore, *, settings: Settings | None = None) -> None:
        self._store = store
        self._collections = (settings or get_settings()).collections
        self._cache: Dict[str, PortfolioSummary] = {}

    async def _load_sources(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        investments = await self._store.list(self._collections.investments)
        requests = await self._store.list(self._collections.investment_requests)
        return investments, requests

    async def summary(self, user_id: str) -> PortfolioSummary:
        """Return the cached or freshly computed summary for ``user_id``.

        Raises:
            NotFoundError: If the user profile does not exist.
        """

        cached = self._cache.get(user_id)
        if cached is not None:
            return cached
        raw_user = await self._store.get(self._collections.user_profiles, user_id)
        if raw_user is None:
            raise NotFoundError(self._collections.user_profiles, user_id)
        user = normalize_user(raw_user)
        investments, requests = await self._load_sources()
        result = aggregate(user.id, user.email, investments, requests)
        self._cache[user_id] = result
        LOGGER.debug(
            "Portfolio computed for user=%s amount=%s area=%s items=%s",
            user_id,
            result.total_amount,
            result.total_area,
            len(result.counted),
        )
        return result

    async def summary_for_email(self, email: str) -> PortfolioSummary:
        """Aggregate by email, attaching the user id when a profile carries that email."""

        target = normalize_email(email)
        user_id = ""
        for raw_user in await self._store.list(self._collections.user_profiles):
            user = normalize_user(raw_user)
            if target and user.email == target:
                user_id = user.id
                break
        investments, requests = await self._load_sources()
        return aggregate(user_id, target, investments, requests)

    def invalidate(self, *user_ids: str) -> None:
        """Drop cached summaries for ``user_ids``."""

        for user_id in user_ids:
            self._cache.pop(user_id, None)


__all__ = [
    "Fingerprint",
    "PortfolioService",
    "PortfolioSummary",
    "aggregate",
    "counts_toward_totals",
    "fingerprint",
    "shown_in_history",
]
