"""Work order money math: line totals, discounts and the payment split."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from ..domain import Discount, PaymentDetails, Totals
from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_money(value: object) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"not a valid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValidationError(f"not a valid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_discount(raw: object, kind: str | None = None) -> Discount | None:
    """Read a discount from an explicit ``kind`` + value or a legacy string.

    ``"20"`` is a flat amount, ``"10%"`` a percentage, empty means no
    discount. Anything else is rejected instead of being read as zero.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None

    if kind is None:
        kind = "flat"
        if text.endswith("%"):
            kind = "percent"
            text = text[:-1].strip()
    elif kind not in ("flat", "percent"):
        raise ValidationError(f"unknown discount type: {kind!r}")

    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise ValidationError(f"discount must be a number or a percentage, got {raw!r}") from e
    if not value.is_finite() or value < 0:
        raise ValidationError(f"discount must be a non-negative number, got {raw!r}")
    if kind == "percent" and value > HUNDRED:
        raise ValidationError("percentage discount cannot exceed 100")

    return Discount(kind=kind, value=value.quantize(CENT, rounding=ROUND_HALF_UP))


def discount_amount(discount: Discount | None, subtotal: Decimal) -> Decimal:
    if discount is None:
        return ZERO.quantize(CENT)
    if discount.kind == "percent":
        return (subtotal * discount.value / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    return discount.value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(
    service_prices: Iterable[Decimal],
    charge_prices: Iterable[Decimal],
    product_lines: Iterable[tuple[Decimal, int]],
    discount: Discount | None = None,
) -> Totals:
    total_service_charge = sum((to_money(p) for p in service_prices), ZERO)
    total_service_charge += sum((to_money(p) for p in charge_prices), ZERO)
    total_product_cost = sum((to_money(price) * int(qty) for price, qty in product_lines), ZERO)

    subtotal = total_service_charge + total_product_cost
    off = discount_amount(discount, subtotal)
    total = max(ZERO, subtotal - off)

    return Totals(
        total_service_charge=total_service_charge.quantize(CENT),
        total_product_cost=total_product_cost.quantize(CENT),
        discount_amount=off,
        total_amount=total.quantize(CENT),
    )


def settle_payment(payment: PaymentDetails, total_amount: Decimal) -> PaymentDetails:
    """Validate and normalise how ``total_amount`` is paid."""
    total = to_money(total_amount)

    if payment.method == "cash":
        return PaymentDetails(method="cash", cash_amount=total, upi_amount=ZERO.quantize(CENT))
    if payment.method == "upi":
        return PaymentDetails(method="upi", cash_amount=ZERO.quantize(CENT), upi_amount=total)
    if payment.method != "both":
        raise ValidationError(f"unknown payment method: {payment.method!r}")

    if payment.cash_amount is None or payment.upi_amount is None:
        raise ValidationError("cash_amount and upi_amount are required when payment method is 'both'")
    cash = to_money(payment.cash_amount)
    upi = to_money(payment.upi_amount)
    if cash < 0 or upi < 0:
        raise ValidationError("payment amounts cannot be negative")
    if cash + upi != total:
        raise ValidationError(
            f"cash amount ({cash}) and UPI amount ({upi}) must sum to the total amount ({total})"
        )
    return PaymentDetails(method="both", cash_amount=cash, upi_amount=upi)
