from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from app.services import jobs as jobs_service
from fleet_core.errors import ValidationError

router = APIRouter(prefix="/costing", tags=["costing"])


class LineInput(BaseModel):
    id: Optional[str] = None
    description: str = ""
    unit_price: Decimal
    quantity: Decimal = Decimal("1")
    discount: Decimal = Decimal("0")


class CostSummaryRequest(BaseModel):
    products: List[LineInput] = Field(default_factory=list)
    services: List[LineInput] = Field(default_factory=list)
    labor_charges: Decimal = Decimal("0")
    tax_rate: Optional[Decimal] = None
    tax_percent: Optional[Decimal] = None
    paid_amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    today: Optional[date] = None


@router.post("/summary")
def post_summary(payload: CostSummaryRequest):
    try:
        return jobs_service.cost_summary(payload.model_dump())
    except ValidationError as exc:
        detail = {"error": type(exc).__name__, "message": str(exc), "field": exc.field}
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail) from exc
