from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from psycopg import Connection

from ..domain import (
    EFFECT_ORDER,
    WORK_ORDER_STATUSES,
    Discount,
    PaymentDetails,
    ProductSelection,
    ServiceCharge,
    ServiceSelection,
    Totals,
    WorkOrderInput,
    WorkOrderPatch,
)
from ..repositories.customer_repo import CustomerRepository
from ..repositories.product_repo import ProductRepository
from ..repositories.service_repo import ServiceRepository
from ..repositories.vehicle_repo import VehicleRepository
from ..repositories.work_order_line_repo import WorkOrderLineRepository
from ..repositories.work_order_repo import WorkOrderRepository
from .errors import InventoryError, MissingReferenceError, NotFoundError, ValidationError
from .loyalty import loyalty_label
from .periods import Period
from .pricing import compute_totals, settle_payment, to_money
from .sequence import SequenceGenerator

logger = logging.getLogger(__name__)


def real_id(raw: object) -> int | None:
    """Return a database id, or None for client-side placeholders like ``"temp-3"``."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    text = str(raw).strip()
    if text.isdigit() and int(text) > 0:
        return int(text)
    return None


def _now() -> datetime:
    return datetime.now().astimezone()


class WorkOrderService:
    """Prices work orders and keeps stock and loyalty counters in step with them.

    Every mutating method expects ``conn`` to be inside ``Db.transaction()``:
    a raised error rolls back stock, loyalty, the serial and the order row
    together.
    """

    def __init__(
        self,
        *,
        customer_repo: CustomerRepository,
        vehicle_repo: VehicleRepository,
        service_repo: ServiceRepository,
        product_repo: ProductRepository,
        order_repo: WorkOrderRepository,
        line_repo: WorkOrderLineRepository,
        sequence: SequenceGenerator,
        free_service_threshold: int = 10,
    ) -> None:
        self.customer_repo = customer_repo
        self.vehicle_repo = vehicle_repo
        self.service_repo = service_repo
        self.product_repo = product_repo
        self.order_repo = order_repo
        self.line_repo = line_repo
        self.sequence = sequence
        self.free_service_threshold = free_service_threshold

    # reads

    def get(self, conn: Connection, order_id: int) -> dict | None:
        order = self.order_repo.get(conn, order_id)
        if order is None:
            return None
        return self._assemble(conn, [order])[0]

    def list(self, conn: Connection, period: Period | None = None) -> list[dict]:
        return self._assemble(conn, self.order_repo.list(conn, period=period))

    def list_for_vehicle(self, conn: Connection, vehicle_id: int) -> list[dict]:
        return self._assemble(conn, self.order_repo.list_by_vehicle(conn, vehicle_id))

    # writes

    def create(self, conn: Connection, data: WorkOrderInput) -> dict:
        if data.customer_id is None:
            raise ValidationError("customer required")
        status = data.status or "pending"
        if status not in WORK_ORDER_STATUSES:
            raise ValidationError(f"unknown status: {status!r}")
        if status == "cancelled":
            raise ValidationError("a work order cannot be created as cancelled")

        customer = self._require(self.customer_repo, conn, data.customer_id, "customer")
        vehicle = None
        if data.vehicle_id is not None:
            vehicle = self._require(self.vehicle_repo, conn, data.vehicle_id, "vehicle")
            if vehicle["customer_id"] != customer["id"]:
                raise ValidationError(
                    f"vehicle {vehicle['id']} does not belong to customer {customer['id']}"
                )

        services = self._snapshot_services(conn, data.services)
        products = self._price_products(conn, data.products)
        charges = self._charge_lines(data.service_charges, services)
        totals = self._totals(services, products, charges, data.discount)
        payment = settle_payment(data.payment_details, totals.total_amount)

        # dry run before anything is written
        self._check_stock(products)

        serial = self.sequence.next_serial(conn)
        now = _now()
        order = self.order_repo.create(
            conn,
            {
                "serial": serial,
                "customer_id": customer["id"],
                "vehicle_id": vehicle["id"] if vehicle else None,
                "status": status,
                **_discount_columns(data.discount),
                **_total_columns(totals),
                **_payment_columns(payment),
                "created_at": data.created_at or now,
                "updated_at": now,
            },
        )
        order_id = order["id"]

        self._write_lines(conn, order_id, services=services, products=products, charges=charges)
        self._reserve_stock(conn, order_id, products)
        self._apply_loyalty(conn, order_id, vehicle, services)

        logger.info(
            "work order %s created (id=%s customer=%s total=%s)",
            serial,
            order_id,
            customer["id"],
            totals.total_amount,
        )
        return self._assemble(conn, [order])[0]

    def update(self, conn: Connection, order_id: int, patch: WorkOrderPatch) -> dict:
        order = self.order_repo.get(conn, order_id)
        if order is None:
            raise NotFoundError(f"work order {order_id} not found")
        if order["status"] == "cancelled":
            raise ValidationError("cancelled work orders cannot be modified")
        if patch.status is not None and patch.status not in WORK_ORDER_STATUSES:
            raise ValidationError(f"unknown status: {patch.status!r}")

        changes: dict = {}
        total = to_money(order["total_amount"])

        if patch.touches_lines():
            current = self._lines_of(conn, order_id)

            services = current["services"]
            if patch.services is not None:
                services = self._snapshot_services(conn, patch.services)

            products = current["products"]
            if patch.products is not None:
                # unchanged products keep the price they were billed at
                prior = {p["product_id"]: p["unit_price"] for p in current["products"] if p["product_id"]}
                products = self._price_products(conn, patch.products, prior)

            if patch.service_charges is not None:
                charges = self._charge_lines(patch.service_charges, services)
            else:
                ids = {s["service_id"] for s in services}
                charges = [
                    {**c, "for_service_id": c["for_service_id"] if c["for_service_id"] in ids else None}
                    for c in current["charges"]
                ]

            if patch.clear_discount:
                discount = None
            elif patch.discount is not None:
                discount = patch.discount
            else:
                discount = _stored_discount(order)

            totals = self._totals(services, products, charges, discount)
            total = totals.total_amount
            changes.update(_discount_columns(discount))
            changes.update(_total_columns(totals))

            for kind in ("services", "products", "charges"):
                self.line_repo.clear(conn, order_id=order_id, kind=kind)
            self._write_lines(conn, order_id, services=services, products=products, charges=charges)

        if patch.payment_details is not None or patch.touches_lines():
            payment = settle_payment(patch.payment_details or _stored_payment(order), total)
            changes.update(_payment_columns(payment))

        if patch.created_at is not None:
            changes["created_at"] = patch.created_at

        if patch.status is not None and patch.status != order["status"]:
            if patch.status == "cancelled":
                self._release(conn, order_id)
            changes["status"] = patch.status
            logger.info("work order %s: %s -> %s", order["serial"], order["status"], patch.status)

        changes["updated_at"] = _now()
        updated = self.order_repo.update(conn, order_id, changes)
        return self._assemble(conn, [updated])[0]

    def delete(self, conn: Connection, order_id: int) -> bool:
        order = self.order_repo.get(conn, order_id)
        if order is None:
            return False
        self._release(conn, order_id)
        deleted = self.order_repo.delete(conn, order_id)
        logger.info("work order %s deleted", order["serial"])
        return deleted

    # helpers

    @staticmethod
    def _require(repo, conn: Connection, row_id: int, what: str) -> dict:
        row = repo.get(conn, row_id)
        if row is None:
            raise MissingReferenceError(f"{what} {row_id} not found")
        return row

    def _snapshot_services(self, conn: Connection, selections: Iterable[ServiceSelection]) -> list[dict]:
        snapshots = []
        for sel in selections:
            service_id = real_id(sel.service_id)
            name = (sel.service_name or "").strip()
            if service_id is None and not name:
                raise ValidationError("each service needs an id or a service name")

            if service_id is not None:
                row = self.service_repo.get(conn, service_id)
                if row is None:
                    raise MissingReferenceError(f"service {service_id} not found")
            else:
                matches = self.service_repo.find_by_name(conn, name)
                if not matches:
                    raise MissingReferenceError(f"service '{name}' not found in the catalog")
                if len(matches) > 1:
                    raise MissingReferenceError(f"service name '{name}' is ambiguous, pass its id")
                row = matches[0]

            snapshots.append(
                {
                    "service_id": row["id"],
                    "service_name": row["service_name"],
                    "description": row.get("description") or "",
                    "price": to_money(row["price"]),
                    "is_offer": bool(row["is_offer"]),
                    "warranty": row.get("warranty") or "",
                }
            )
        return snapshots

    def _price_products(
        self,
        conn: Connection,
        selections: Iterable[ProductSelection],
        prior_prices: dict[int, Decimal] | None = None,
    ) -> list[dict]:
        lines = []
        for sel in selections:
            product = self.product_repo.get(conn, sel.product_id)
            if product is None:
                raise MissingReferenceError(f"product {sel.product_id} not found")
            quantity = sel.quantity if sel.quantity > 0 else 1
            if prior_prices and product["id"] in prior_prices:
                unit_price = to_money(prior_prices[product["id"]])
            else:
                unit_price = to_money(product["price"])
            lines.append(
                {
                    "product_id": product["id"],
                    "product_name": product["product_name"],
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "stock": int(product["stock"]),
                }
            )
        return lines

    @staticmethod
    def _charge_lines(charges: Iterable[ServiceCharge], services: list[dict]) -> list[dict]:
        service_ids = {s["service_id"] for s in services}
        lines = []
        for ch in charges:
            description = (ch.description or "").strip()
            if not description:
                raise ValidationError("service charge description is required")
            price = to_money(ch.price)
            if price < 0:
                raise ValidationError(f"service charge '{description}' cannot be negative")
            for_id = real_id(ch.for_service_id)
            if for_id is not None and for_id not in service_ids:
                raise ValidationError(
                    f"service charge '{description}' refers to service {for_id} which is not on this order"
                )
            lines.append({"description": description, "price": price, "for_service_id": for_id})
        return lines

    @staticmethod
    def _totals(services: list[dict], products: list[dict], charges: list[dict], discount: Discount | None) -> Totals:
        return compute_totals(
            (s["price"] for s in services),
            (c["price"] for c in charges),
            ((p["unit_price"], p["quantity"]) for p in products),
            discount,
        )

    @staticmethod
    def _demand(products: list[dict]) -> dict[int, int]:
        """Quantity per product, keyed in ascending id order so row locks are taken in a fixed order."""
        demand: dict[int, int] = defaultdict(int)
        for p in products:
            demand[p["product_id"]] += p["quantity"]
        return dict(sorted(demand.items()))

    def _check_stock(self, products: list[dict]) -> None:
        by_id = {p["product_id"]: p for p in products}
        for product_id, qty in self._demand(products).items():
            line = by_id[product_id]
            if line["stock"] - qty < 0:
                logger.warning(
                    "rejected order: %s has %s in stock, %s requested", line["product_name"], line["stock"], qty
                )
                raise InventoryError(
                    f"insufficient stock for {line['product_name']}: {qty} requested, {line['stock']} available"
                )

    def _reserve_stock(self, conn: Connection, order_id: int, products: list[dict]) -> None:
        names = {p["product_id"]: p["product_name"] for p in products}
        for product_id, qty in self._demand(products).items():
            if not self.product_repo.decrease_stock(conn, product_id=product_id, qty=qty):
                raise InventoryError(f"insufficient stock for {names[product_id]}: {qty} requested")
            self.line_repo.add_effect(conn, order_id=order_id, kind="stock", target_id=product_id, amount=qty)

    def _apply_loyalty(self, conn: Connection, order_id: int, vehicle: dict | None, services: list[dict]) -> None:
        if vehicle is None:
            return
        offers = [s for s in services if s["is_offer"]]
        if not offers:
            return

        count = self.vehicle_repo.add_service_count(conn, vehicle_id=vehicle["id"], delta=len(offers))
        self.line_repo.add_effect(conn, order_id=order_id, kind="loyalty", target_id=vehicle["id"], amount=len(offers))
        logger.info("vehicle %s service count now %s", vehicle["id"], count)

        for service_id, n in Counter(s["service_id"] for s in offers).items():
            self.service_repo.add_usage(conn, service_id=service_id, delta=n)
            self.line_repo.add_effect(conn, order_id=order_id, kind="usage", target_id=service_id, amount=n)

    def _release(self, conn: Connection, order_id: int) -> None:
        """Undo the stock and loyalty effects recorded at creation, once."""
        effects = sorted(
            self.line_repo.effects_for(conn, order_id),
            key=lambda e: (EFFECT_ORDER.index(e["kind"]), e["target_id"]),
        )
        for effect in effects:
            kind, target, amount = effect["kind"], effect["target_id"], int(effect["amount"])
            if kind == "stock":
                if not self.product_repo.increase_stock(conn, product_id=target, qty=amount):
                    logger.warning("product %s no longer exists, %s units not restocked", target, amount)
            elif kind == "loyalty":
                self.vehicle_repo.add_service_count(conn, vehicle_id=target, delta=-amount)
            elif kind == "usage":
                self.service_repo.add_usage(conn, service_id=target, delta=-amount)
        self.line_repo.clear_effects(conn, order_id)
        logger.info("work order %s: stock and loyalty effects released", order_id)

    def _write_lines(
        self,
        conn: Connection,
        order_id: int,
        *,
        services: list[dict],
        products: list[dict],
        charges: list[dict],
    ) -> None:
        for pos, line in enumerate(services):
            self.line_repo.add_service(conn, order_id=order_id, position=pos, line=line)
        for pos, line in enumerate(products):
            self.line_repo.add_product(conn, order_id=order_id, position=pos, line=line)
        for pos, line in enumerate(charges):
            self.line_repo.add_charge(conn, order_id=order_id, position=pos, line=line)

    def _lines_of(self, conn: Connection, order_id: int) -> dict[str, list[dict]]:
        return {
            "services": [_service_line(r) for r in self.line_repo.services_for(conn, [order_id])],
            "products": [_product_line(r) for r in self.line_repo.products_for(conn, [order_id])],
            "charges": [_charge_line(r) for r in self.line_repo.charges_for(conn, [order_id])],
        }

    def _assemble(self, conn: Connection, orders: list[dict]) -> list[dict]:
        ids = [o["id"] for o in orders]
        services = _group(self.line_repo.services_for(conn, ids))
        products = _group(self.line_repo.products_for(conn, ids))
        charges = _group(self.line_repo.charges_for(conn, ids))
        customers: dict[int, dict | None] = {}
        vehicles: dict[int, dict | None] = {}

        result = []
        for o in orders:
            cid, vid = o["customer_id"], o["vehicle_id"]
            if cid not in customers:
                customers[cid] = self.customer_repo.get(conn, cid)
            if vid is not None and vid not in vehicles:
                vehicles[vid] = self.vehicle_repo.get(conn, vid)

            product_lines = [_product_line(r) for r in products.get(o["id"], [])]
            for p in product_lines:
                p["line_total"] = p["unit_price"] * p["quantity"]

            result.append(
                {
                    "id": o["id"],
                    "serial": o["serial"],
                    "status": o["status"],
                    "customer_id": cid,
                    "customer": _brief_customer(customers[cid]),
                    "vehicle_id": vid,
                    "vehicle": self._brief_vehicle(vehicles.get(vid)) if vid is not None else None,
                    "services": [_service_line(r) for r in services.get(o["id"], [])],
                    "products": product_lines,
                    "service_charges": [_charge_line(r) for r in charges.get(o["id"], [])],
                    "discount": _discount_view(o),
                    "discount_amount": o["discount_amount"],
                    "total_service_charge": o["total_service_charge"],
                    "total_product_cost": o["total_product_cost"],
                    "total_amount": o["total_amount"],
                    "payment_details": {
                        "method": o["payment_method"],
                        "cash_amount": o["cash_amount"],
                        "upi_amount": o["upi_amount"],
                    },
                    "created_at": o["created_at"],
                    "updated_at": o["updated_at"],
                }
            )
        return result

    def _brief_vehicle(self, row: dict | None) -> dict | None:
        if row is None:
            return None
        return {
            "id": row["id"],
            "model": row["model"],
            "brand": row.get("brand"),
            "registration_number": row["registration_number"],
            "service_count": row["service_count"],
            "loyalty": loyalty_label(int(row["service_count"]), self.free_service_threshold),
        }


def _group(rows: list[dict]) -> dict[int, list[dict]]:
    grouped: dict[int, list[dict]] = defaultdict(list)
    for r in rows:
        grouped[r["order_id"]].append(r)
    return grouped


def _service_line(row: dict) -> dict:
    return {
        "service_id": row["service_id"],
        "service_name": row["service_name"],
        "description": row["description"],
        "price": row["price"],
        "is_offer": row["is_offer"],
        "warranty": row["warranty"],
    }


def _product_line(row: dict) -> dict:
    return {
        "product_id": row["product_id"],
        "product_name": row["product_name"],
        "quantity": row["quantity"],
        "unit_price": row["unit_price"],
    }


def _charge_line(row: dict) -> dict:
    return {"description": row["description"], "price": row["price"], "for_service_id": row["for_service_id"]}


def _brief_customer(row: dict | None) -> dict | None:
    if row is None:
        return None
    return {"id": row["id"], "name": row.get("name"), "phone": row["phone"], "email": row.get("email")}


def _stored_discount(order: dict) -> Discount | None:
    if not order.get("discount_type"):
        return None
    return Discount(kind=order["discount_type"], value=to_money(order["discount_value"]))


def _stored_payment(order: dict) -> PaymentDetails:
    return PaymentDetails(
        method=order["payment_method"],
        cash_amount=order["cash_amount"],
        upi_amount=order["upi_amount"],
    )


def _discount_view(order: dict) -> dict | None:
    if not order.get("discount_type"):
        return None
    return {"type": order["discount_type"], "value": order["discount_value"]}


def _discount_columns(discount: Discount | None) -> dict:
    if discount is None:
        return {"discount_type": None, "discount_value": None}
    return {"discount_type": discount.kind, "discount_value": discount.value}


def _total_columns(totals: Totals) -> dict:
    return {
        "discount_amount": totals.discount_amount,
        "total_service_charge": totals.total_service_charge,
        "total_product_cost": totals.total_product_cost,
        "total_amount": totals.total_amount,
    }


def _payment_columns(payment: PaymentDetails) -> dict:
    return {
        "payment_method": payment.method,
        "cash_amount": payment.cash_amount,
        "upi_amount": payment.upi_amount,
    }
