"""Cost aggregation shared by diagnosis, quotation and invoice documents."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
from enum import Enum
from typing import Iterable, Sequence

from .errors import ValidationError

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

getcontext().prec = 28


def to_decimal(value: int | float | str | Decimal | None, field: str) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        parsed = value
    else:
        try:
            parsed = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"{field} must be numeric, got {value!r}", field=field) from exc
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return parsed


def round_money(value: Decimal) -> Decimal:
    """Round a monetary amount for display. Never used inside aggregation."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class LineKind(str, Enum):
    PRODUCT = "product"
    SERVICE = "service"


@dataclass(frozen=True)
class LineItem:
    """A priced, discountable product or service line."""

    id: str
    description: str
    unit_price: Decimal
    quantity: Decimal = ONE
    discount: Decimal = ZERO
    kind: LineKind = LineKind.PRODUCT

    def __post_init__(self) -> None:
        unit_price = to_decimal(self.unit_price, "unit_price")
        quantity = to_decimal(self.quantity, "quantity")
        discount = to_decimal(self.discount, "discount")
        if unit_price < ZERO:
            raise ValidationError("Unit price must be non-negative", field="unit_price")
        if quantity < ONE:
            raise ValidationError("Quantity must be at least 1", field="quantity")
        if discount < ZERO:
            raise ValidationError("Discount must be non-negative", field="discount")
        object.__setattr__(self, "unit_price", unit_price)
        object.__setattr__(self, "quantity", quantity)
        object.__setattr__(self, "discount", discount)
        object.__setattr__(self, "kind", LineKind(self.kind))

    @property
    def sub_total(self) -> Decimal:
        # Discount may exceed price x quantity; the line then contributes nothing.
        return max(ZERO, self.unit_price * self.quantity - self.discount)


@dataclass(frozen=True)
class CostSummary:
    products_subtotal: Decimal
    services_subtotal: Decimal
    items_subtotal: Decimal
    items_discount: Decimal
    labor_charges: Decimal
    combined_subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    grand_total: Decimal

    def rounded(self) -> "CostSummary":
        return replace(
            self,
            products_subtotal=round_money(self.products_subtotal),
            services_subtotal=round_money(self.services_subtotal),
            items_subtotal=round_money(self.items_subtotal),
            items_discount=round_money(self.items_discount),
            labor_charges=round_money(self.labor_charges),
            combined_subtotal=round_money(self.combined_subtotal),
            tax_amount=round_money(self.tax_amount),
            grand_total=round_money(self.grand_total),
        )


class PaymentStatus(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"
    PARTIALLY_PAID = "Partially Paid"
    OVERDUE = "Overdue"


@dataclass(frozen=True)
class InvoiceSummary:
    costs: CostSummary
    paid_amount: Decimal
    balance: Decimal
    payment_status: PaymentStatus
    due_date: date | None = None

    def rounded(self) -> "InvoiceSummary":
        return replace(
            self,
            costs=self.costs.rounded(),
            paid_amount=round_money(self.paid_amount),
            balance=round_money(self.balance),
        )


def _sum(values: Iterable[Decimal]) -> Decimal:
    total = ZERO
    for value in values:
        total += value
    return total


def aggregate(
    products: Sequence[LineItem],
    services: Sequence[LineItem],
    labor_charges: int | float | str | Decimal = ZERO,
    tax_rate: int | float | str | Decimal = ZERO,
) -> CostSummary:
    """Aggregate product and service lines plus a flat labor charge.

    ``tax_rate`` is a fraction (``0.05`` for 5%). Results are unrounded so the
    same inputs always give the same output.
    """

    labor = to_decimal(labor_charges, "labor_charges")
    rate = to_decimal(tax_rate, "tax_rate")
    if labor < ZERO:
        raise ValidationError("Labor charges must be non-negative", field="labor_charges")
    if rate < ZERO:
        raise ValidationError("Tax rate must be non-negative", field="tax_rate")

    products = tuple(products)
    services = tuple(services)
    products_subtotal = _sum(item.sub_total for item in products)
    services_subtotal = _sum(item.sub_total for item in services)
    items_subtotal = products_subtotal + services_subtotal
    items_discount = _sum(item.discount for item in (*products, *services))
    combined_subtotal = items_subtotal + labor
    tax_amount = combined_subtotal * rate
    return CostSummary(
        products_subtotal=products_subtotal,
        services_subtotal=services_subtotal,
        items_subtotal=items_subtotal,
        items_discount=items_discount,
        labor_charges=labor,
        combined_subtotal=combined_subtotal,
        tax_rate=rate,
        tax_amount=tax_amount,
        grand_total=combined_subtotal + tax_amount,
    )


def settle(
    summary: CostSummary,
    paid_amount: int | float | str | Decimal = ZERO,
    due_date: date | None = None,
    today: date | None = None,
) -> InvoiceSummary:
    """Apply an externally recorded payment to a cost summary."""

    paid = to_decimal(paid_amount, "paid_amount")
    if paid < ZERO:
        raise ValidationError("Paid amount must be non-negative", field="paid_amount")
    balance = max(ZERO, summary.grand_total - paid)
    if balance == ZERO:
        status = PaymentStatus.PAID
    elif due_date is not None and today is not None and today > due_date:
        status = PaymentStatus.OVERDUE
    elif paid > ZERO:
        status = PaymentStatus.PARTIALLY_PAID
    else:
        status = PaymentStatus.UNPAID
    return InvoiceSummary(
        costs=summary,
        paid_amount=paid,
        balance=balance,
        payment_status=status,
        due_date=due_date,
    )


def tax_rate_from_percent(percent: int | float | str | Decimal) -> Decimal:
    value = to_decimal(percent, "tax_percent")
    if value < ZERO:
        raise ValidationError("Tax percent must be non-negative", field="tax_percent")
    return value / HUNDRED


__all__ = [
    "CostSummary",
    "InvoiceSummary",
    "LineItem",
    "LineKind",
    "PaymentStatus",
    "aggregate",
    "round_money",
    "settle",
    "tax_rate_from_percent",
    "to_decimal",
]
