"""Manual investment entry performed by an operator on behalf of a user."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from landshare.errors import NotFoundError, ValidationError
from landshare.normalization import InvestmentSource, coerce_number, normalize_user
from landshare.normalization.normalizer import clean_string
from landshare.observability import Event, Metric, Observability, get_observability
from landshare.services.audit import AuditLog
from landshare.services.portfolio import PortfolioService
from landshare.settings import Settings, get_settings
from landshare.store.document_store import DocumentStore, Increment

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ManualInvestmentResult:
    investment_id: str
    ownership_id: str
    user_id: str
    plot_id: str
    area_units: float
    amount_paid: float
    price_per_unit: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "investment_id": self.investment_id,
            "ownership_id": self.ownership_id,
            "user_id": self.user_id,
            "plot_id": self.plot_id,
            "area_units": self.area_units,
            "amount_paid": self.amount_paid,
            "price_per_unit": self.price_per_unit,
        }


class ManualInvestmentService:
    """Record an investment, its ownership row, and the plot/user counters.

    No ``investment_requests`` row is written, so the aggregator never sees the
    entry twice. Writes are not rolled back if a later one fails.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        settings: Settings | None = None,
        portfolio: PortfolioService | None = None,
        audit: AuditLog | None = None,
        observability: Observability | None = None,
    ) -> None:
        resolved = settings or get_settings()
        self._store = store
        self._collections = resolved.collections
        self._portfolio = portfolio
        self._audit = audit or AuditLog(store, collection=resolved.collections.audit_log)
        self._observability = observability or get_observability(component="manual_investment", settings=resolved)

    async def record(
        self,
        *,
        user_id: str,
        plot_id: str,
        area: Any,
        amount_paid: Any,
        operator: str,
        price_per_unit: Any = None,
        payment_method: str = "bank_transfer",
        notes: str = "",
    ) -> ManualInvestmentResult:
        """Validate the entry, then write it.

        Raises:
            ValidationError: If no plot is selected or area/amount are not positive.
            NotFoundError: If the user or plot does not exist.
        """

        area_units = coerce_number(area)
        amount = coerce_number(amount_paid)
        if not clean_string(user_id):
            raise ValidationError("A user must be selected")
        if not clean_string(plot_id):
            raise ValidationError("A plot must be selected")
        if area_units <= 0:
            raise ValidationError("Area must be greater than zero")
        if amount <= 0:
            raise ValidationError("Amount paid must be greater than zero")
        price = coerce_number(price_per_unit) if price_per_unit not in (None, "") else amount / area_units
        if price <= 0:
            price = amount / area_units

        plot = await self._store.get(self._collections.plots, plot_id)
        if plot is None:
            raise NotFoundError(self._collections.plots, plot_id)
        raw_user = await self._store.get(self._collections.user_profiles, user_id)
        if raw_user is None:
            raise NotFoundError(self._collections.user_profiles, user_id)

        user = normalize_user(raw_user)
        now = datetime.now(timezone.utc)
        user_name = user.display_name or user.email
        plot_name = clean_string(plot.get("name")) or "Plot"
        project_id = clean_string(plot.get("projectId")) or clean_string(plot.get("project_id"))
        project_name = clean_string(plot.get("projectName")) or clean_string(plot.get("project_name"))
        note = notes or "Manual investment added by admin"
        shared = {
            "userId": user.id,
            "user_id": user.id,
            "userEmail": user.email,
            "user_email": user.email,
            "userName": user_name,
            "user_name": user_name,
            "plotId": plot_id,
            "plot_id": plot_id,
            "plotName": plot_name,
            "plot_name": plot_name,
            "projectId": project_id,
            "project_id": project_id,
            "pricePerSqm": price,
            "price_per_sqm": price,
            "status": "active",
            "created_at": now,
            "createdAt": now,
            "source": InvestmentSource.MANUAL_ADMIN_ENTRY.value,
            "notes": note,
        }

        investment_id = await self._store.add(
            self._collections.investments,
            {
                **shared,
                "project_title": project_name or plot_name,
                "sqm": area_units,
                "sqm_purchased": area_units,
                "amount_paid": amount,
                "Amount_paid": amount,
                "totalAmount": amount,
                "investment_type": "plot_purchase",
                "payment_method": payment_method,
                "paymentMethod": payment_method,
                "payment_status": "verified",
                "paymentStatus": "verified",
                "approved_at": now,
                "approved_by": operator,
            },
        )
        ownership_id = await self._store.add(
            self._collections.plot_ownership,
            {
                **shared,
                "projectName": project_name,
                "project_name": project_name,
                "sqm": area_units,
                "sqm_owned": area_units,
                "amountPaid": amount,
                "amount_paid": amount,
                "investmentId": investment_id,
                "investment_id": investment_id,
                "ownership_type": "plot_purchase",
            },
        )
        await self._store.update(
            self._collections.plots,
            plot_id,
            {
                "availableSqm": Increment(-area_units),
                "available_sqm": Increment(-area_units),
                "totalOwners": Increment(1),
                "total_owners": Increment(1),
                "totalRevenue": Increment(amount),
                "total_revenue": Increment(amount),
                "soldSqm": Increment(area_units),
                "sold_sqm": Increment(area_units),
                "updated_at": now,
                "updatedAt": now,
            },
        )
        await self._store.update(
            self._collections.user_profiles,
            user_id,
            {
                "total_investment": Increment(amount),
                "totalInvestment": Increment(amount),
                "portfolio_sqm": Increment(area_units),
                "portfolioSqm": Increment(area_units),
                "last_investment_date": now,
                "lastInvestmentDate": now,
                "total_investments": Increment(1),
                "totalInvestments": Increment(1),
            },
        )

        if self._portfolio is not None:
            self._portfolio.invalidate(user_id)
        result = ManualInvestmentResult(
            investment_id=investment_id,
            ownership_id=ownership_id,
            user_id=user_id,
            plot_id=plot_id,
            area_units=area_units,
            amount_paid=amount,
            price_per_unit=price,
        )
        await self._audit.record("manual_investment", operator=operator, payload=result.as_dict())
        self._observability.emit_event(Event.MANUAL_INVESTMENT_RECORDED, operator=operator, **result.as_dict())
        self._observability.increment(Metric.MANUAL_INVESTMENTS)
        LOGGER.info(
            "Manual investment %s recorded for user=%s plot=%s area=%s amount=%s by %s",
            investment_id,
            user_id,
            plot_id,
            area_units,
            amount,
            operator,
        )
        return result


__all__ = ["ManualInvestmentResult", "ManualInvestmentService"]
