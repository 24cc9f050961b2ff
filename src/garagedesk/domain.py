from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal

WorkOrderStatus = Literal["pending", "in-progress", "paid", "cancelled"]
PaymentMethod = Literal["cash", "upi", "both"]
DiscountKind = Literal["flat", "percent"]
EffectKind = Literal["stock", "loyalty", "usage"]

# order in which a work order touches rows; releases follow it too
EFFECT_ORDER: tuple[EffectKind, ...] = ("stock", "loyalty", "usage")

WORK_ORDER_STATUSES: tuple[str, ...] = ("pending", "in-progress", "paid", "cancelled")


@dataclass(frozen=True)
class ServiceSelection:
    # service_id may still hold a client placeholder ("temp-1"); the engine strips it
    service_id: object = None
    service_name: str | None = None


@dataclass(frozen=True)
class ProductSelection:
    product_id: int
    quantity: int = 1


@dataclass(frozen=True)
class ServiceCharge:
    description: str
    price: Decimal
    for_service_id: object = None


@dataclass(frozen=True)
class PaymentDetails:
    method: PaymentMethod = "cash"
    cash_amount: Decimal | None = None
    upi_amount: Decimal | None = None


@dataclass(frozen=True)
class Discount:
    kind: DiscountKind = "flat"
    value: Decimal = Decimal("0")


@dataclass(frozen=True)
class Totals:
    total_service_charge: Decimal
    total_product_cost: Decimal
    discount_amount: Decimal
    total_amount: Decimal


@dataclass
class WorkOrderInput:
    customer_id: int | None
    vehicle_id: int | None = None
    services: list[ServiceSelection] = field(default_factory=list)
    products: list[ProductSelection] = field(default_factory=list)
    service_charges: list[ServiceCharge] = field(default_factory=list)
    discount: Discount | None = None
    payment_details: PaymentDetails = field(default_factory=PaymentDetails)
    created_at: datetime | None = None
    status: WorkOrderStatus | None = None


@dataclass
class WorkOrderPatch:
    """Partial update. ``None`` means "leave as is"; an empty list clears the lines."""

    status: WorkOrderStatus | None = None
    services: list[ServiceSelection] | None = None
    products: list[ProductSelection] | None = None
    service_charges: list[ServiceCharge] | None = None
    discount: Discount | None = None
    clear_discount: bool = False
    payment_details: PaymentDetails | None = None
    created_at: datetime | None = None

    def touches_lines(self) -> bool:
        return (
            self.services is not None
            or self.products is not None
            or self.service_charges is not None
            or self.discount is not None
            or self.clear_discount
        )
