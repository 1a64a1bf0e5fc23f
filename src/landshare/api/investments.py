"""Manual investment entry endpoint."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from landshare.api.auth import require_role
from landshare.api.dependencies import get_services
from landshare.services.factories import ServiceBundle

router = APIRouter(prefix="/investments", tags=["investments"])


class ManualInvestmentRequest(BaseModel):
    """Operator-entered investment; amounts are validated by the service."""

    user_id: str
    plot_id: str = ""
    area: float = 0.0
    amount_paid: float = 0.0
    price_per_unit: Optional[float] = None
    payment_method: str = "bank_transfer"
    notes: str = ""


@router.post("/manual", status_code=status.HTTP_201_CREATED, summary="Record a manual investment")
async def record_manual_investment(
    payload: ManualInvestmentRequest,
    operator: Dict[str, str] = Depends(require_role("sub_admin")),
    services: ServiceBundle = Depends(get_services),
) -> Dict[str, Any]:
    result = await services.investments.record(
        user_id=payload.user_id,
        plot_id=payload.plot_id,
        area=payload.area,
        amount_paid=payload.amount_paid,
        price_per_unit=payload.price_per_unit,
        payment_method=payload.payment_method,
        notes=payload.notes,
        operator=operator["email"],
    )
    return result.as_dict()
