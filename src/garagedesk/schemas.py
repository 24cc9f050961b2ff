"""
Request payload schemas.

One pydantic model per table for the plain CRUD endpoints, plus the work
order create/update payloads. Work order payloads also accept the camelCase
keys sent by the browser front end (``customerId``, ``paymentDetails``...).
"""

from __future__ import annotations

import re
import datetime as dt
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .domain import (
    PaymentDetails,
    ProductSelection,
    ServiceCharge,
    ServiceSelection,
    WorkOrderInput,
    WorkOrderPatch,
)
from .services.pricing import parse_discount

MOBILE_RE = re.compile(r"^\+?\d{10,15}$")
PLATE_RE = re.compile(r"^[A-Z0-9-]+$")


class Schema(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore", populate_by_name=True)


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


# Entity tables
# --------------------------------------------------


class Customer(Schema):
    name: str | None = Field(None, description="Customer name")
    phone: str = Field(..., min_length=1, description="Contact number, unique")
    email: str | None = Field(None, description="Email address")

    @field_validator("name", "email", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)


class Vehicle(Schema):
    customer_id: int = Field(..., gt=0)
    model: str = Field(..., min_length=1)
    brand: str | None = None
    year: str | None = None
    registration_number: str = Field(..., min_length=1)
    service_count: int = Field(0, ge=0)

    @field_validator("year", mode="before")
    @classmethod
    def year_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else _blank_to_none(v)

    @field_validator("registration_number")
    @classmethod
    def upper_plate(cls, v: str) -> str:
        return v.upper()


class Service(Schema):
    service_name: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., ge=0)
    is_offer: bool = Field(True, description="Counts toward the vehicle loyalty counter")
    warranty: str = ""
    usage_count: int = Field(0, ge=0)


class Product(Schema):
    product_name: str = Field(..., min_length=1)
    description: str = ""
    brand: str = ""
    price: Decimal = Field(..., ge=0)
    stock: int = Field(0, ge=0)


class Employee(Schema):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)


class Salary(Schema):
    employee_id: int = Field(..., gt=0)
    month: date = Field(..., description="Salary month; YYYY-MM accepted")
    base_salary: Decimal = Field(..., ge=0)
    bonus: Decimal = Decimal("0")
    deduction: Decimal = Decimal("0")
    borrowed: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    is_paid: bool = False

    @field_validator("month", mode="before")
    @classmethod
    def month_text(cls, v: Any) -> Any:
        if isinstance(v, str) and re.fullmatch(r"\d{4}-\d{2}", v.strip()):
            return f"{v.strip()}-01"
        return v

    @field_validator("month")
    @classmethod
    def first_of_month(cls, v: date) -> date:
        return v.replace(day=1)


class Expense(Schema):
    category: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    date: dt.date


class Warranty(Schema):
    package_name: str = Field(..., min_length=1)
    duration_months: int = Field(..., ge=1)
    cost: Decimal = Field(..., ge=0)
    allowed_visits: int = Field(0, ge=0)
    customer_name: str = Field(..., min_length=1)
    mobile_number: str
    car_name: str = Field(..., min_length=1)
    number_plate: str
    issued_date: date
    last_due_date: date
    notes: str = ""

    @field_validator("mobile_number")
    @classmethod
    def valid_mobile(cls, v: str) -> str:
        if not MOBILE_RE.match(v):
            raise ValueError("Please enter a valid mobile number")
        return v

    @field_validator("number_plate")
    @classmethod
    def valid_plate(cls, v: str) -> str:
        v = v.upper()
        if not PLATE_RE.match(v):
            raise ValueError("Please enter a valid number plate")
        return v

    @model_validator(mode="after")
    def due_after_issue(self) -> "Warranty":
        if self.last_due_date < self.issued_date:
            raise ValueError("Last due date must be on or after issued date")
        return self


# Work orders
# --------------------------------------------------

StatusIn = Literal["pending", "in-progress", "paid", "cancelled"]


def _bill_date(v: Any) -> Any:
    """Accept a bare date (the bill day) as well as a full timestamp."""
    if v is None or isinstance(v, datetime):
        return v
    if isinstance(v, date):
        return datetime.combine(v, time())
    if isinstance(v, str):
        text = v.strip()
        if not text:
            return None
        if len(text) == 10:
            return datetime.combine(date.fromisoformat(text), time())
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    return v


class ServiceEntryIn(Schema):
    id: Any = Field(None, validation_alias=AliasChoices("id", "_id", "service_id", "serviceId"))
    service_name: str | None = Field(None, validation_alias=AliasChoices("service_name", "serviceName"))


class ProductEntryIn(Schema):
    product_id: int = Field(..., validation_alias=AliasChoices("product_id", "productId"))
    quantity: int = 1


class ServiceChargeIn(Schema):
    description: str = ""
    price: Decimal = Field(..., ge=0)
    for_service: Any = Field(None, validation_alias=AliasChoices("for", "for_service_id", "forServiceId"))


class PaymentDetailsIn(Schema):
    method: Literal["cash", "upi", "both"] = "cash"
    cash_amount: Decimal | None = Field(None, validation_alias=AliasChoices("cash_amount", "cashAmount"))
    upi_amount: Decimal | None = Field(None, validation_alias=AliasChoices("upi_amount", "upiAmount"))

    def to_domain(self) -> PaymentDetails:
        return PaymentDetails(method=self.method, cash_amount=self.cash_amount, upi_amount=self.upi_amount)


class DiscountIn(Schema):
    type: Literal["flat", "percent"] = "flat"
    value: Decimal = Field(..., ge=0)


DiscountField = DiscountIn | str | Decimal | None


def _discount(raw: DiscountField):
    if isinstance(raw, DiscountIn):
        return parse_discount(raw.value, raw.type)
    return parse_discount(raw)


class WorkOrderCreate(Schema):
    customer_id: int | None = Field(None, validation_alias=AliasChoices("customer_id", "customerId"))
    vehicle_id: int | None = Field(None, validation_alias=AliasChoices("vehicle_id", "vehicleId"))
    services: list[ServiceEntryIn] = Field(default_factory=list)
    products: list[ProductEntryIn] = Field(default_factory=list)
    service_charges: list[ServiceChargeIn] = Field(
        default_factory=list, validation_alias=AliasChoices("service_charges", "serviceCharges")
    )
    discount: DiscountField = None
    payment_details: PaymentDetailsIn = Field(
        default_factory=PaymentDetailsIn, validation_alias=AliasChoices("payment_details", "paymentDetails")
    )
    created_at: datetime | None = Field(None, validation_alias=AliasChoices("created_at", "createdAt"))
    status: StatusIn | None = None

    @field_validator("customer_id", "vehicle_id", mode="before")
    @classmethod
    def blank_ids(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def bill_date(cls, v: Any) -> Any:
        return _bill_date(v)

    def to_input(self) -> WorkOrderInput:
        return WorkOrderInput(
            customer_id=self.customer_id,
            vehicle_id=self.vehicle_id,
            services=[ServiceSelection(service_id=s.id, service_name=s.service_name) for s in self.services],
            products=[ProductSelection(product_id=p.product_id, quantity=p.quantity) for p in self.products],
            service_charges=[
                ServiceCharge(description=c.description, price=c.price, for_service_id=c.for_service)
                for c in self.service_charges
            ],
            discount=_discount(self.discount),
            payment_details=self.payment_details.to_domain(),
            created_at=self.created_at,
            status=self.status,
        )


class WorkOrderUpdate(Schema):
    status: StatusIn | None = None
    services: list[ServiceEntryIn] | None = None
    products: list[ProductEntryIn] | None = None
    service_charges: list[ServiceChargeIn] | None = Field(
        None, validation_alias=AliasChoices("service_charges", "serviceCharges")
    )
    discount: DiscountField = None
    payment_details: PaymentDetailsIn | None = Field(
        None, validation_alias=AliasChoices("payment_details", "paymentDetails")
    )
    created_at: datetime | None = Field(None, validation_alias=AliasChoices("created_at", "createdAt"))

    @field_validator("created_at", mode="before")
    @classmethod
    def bill_date(cls, v: Any) -> Any:
        return _bill_date(v)

    def to_patch(self) -> WorkOrderPatch:
        patch = WorkOrderPatch(status=self.status, created_at=self.created_at)
        if self.services is not None:
            patch.services = [ServiceSelection(service_id=s.id, service_name=s.service_name) for s in self.services]
        if self.products is not None:
            patch.products = [ProductSelection(product_id=p.product_id, quantity=p.quantity) for p in self.products]
        if self.service_charges is not None:
            patch.service_charges = [
                ServiceCharge(description=c.description, price=c.price, for_service_id=c.for_service)
                for c in self.service_charges
            ]
        if "discount" in self.model_fields_set:
            patch.discount = _discount(self.discount)
            patch.clear_discount = patch.discount is None
        if self.payment_details is not None:
            patch.payment_details = self.payment_details.to_domain()
        return patch
