from __future__ import annotations

import copy
import os
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest

from garagedesk.config import AppConfig, BusinessConfig, DbConfig, HttpConfig
from garagedesk.container import Repositories, build_services
from garagedesk.repositories.counter_repo import CounterRepository
from garagedesk.repositories.customer_repo import CustomerRepository
from garagedesk.repositories.employee_repo import EmployeeRepository
from garagedesk.repositories.expense_repo import ExpenseRepository
from garagedesk.repositories.product_repo import ProductRepository
from garagedesk.repositories.salary_repo import SalaryRepository
from garagedesk.repositories.service_repo import ServiceRepository
from garagedesk.repositories.vehicle_repo import VehicleRepository
from garagedesk.repositories.warranty_repo import WarrantyRepository
from garagedesk.repositories.work_order_line_repo import LINE_TABLES, WorkOrderLineRepository
from garagedesk.repositories.work_order_repo import WorkOrderRepository
from garagedesk.web_app import create_app

ADMIN_PASSWORD = "open-sesame"


def pytest_report_header(config) -> str:
    if os.environ.get("GARAGEDESK_TEST_DSN"):
        return "garagedesk: PostgreSQL tests enabled (GARAGEDESK_TEST_DSN)"
    return "garagedesk: PostgreSQL tests skipped, SQL is not exercised (set GARAGEDESK_TEST_DSN)"


class MemoryStore:
    """Stands in for a psycopg connection: repositories receive it as ``conn``."""

    def __init__(self) -> None:
        self.state: dict[str, Any] = {"tables": {}, "ids": {}, "counters": {}}

    def rows(self, table: str) -> dict[int, dict]:
        return self.state["tables"].setdefault(table, {})

    def insert(self, table: str, row: dict) -> dict:
        ids = self.state["ids"]
        ids[table] = ids.get(table, 0) + 1
        stored = {"id": ids[table], **row}
        self.rows(table)[stored["id"]] = stored
        return stored


class MemoryDb:
    def __init__(self) -> None:
        self.store = MemoryStore()

    @contextmanager
    def session(self):
        yield self.store

    @contextmanager
    def transaction(self):
        snapshot = copy.deepcopy(self.store.state)
        try:
            yield self.store
        except Exception:
            self.store.state = snapshot
            raise


class MemoryTable:
    defaults: dict = {}

    def create(self, conn: MemoryStore, data: dict) -> dict:
        row = {**self.defaults, **{c: data[c] for c in self.columns if c in data}}
        row.setdefault("created_at", datetime.now().astimezone())
        return dict(conn.insert(self.table, row))

    def get(self, conn: MemoryStore, row_id: int) -> dict | None:
        row = conn.rows(self.table).get(row_id)
        return dict(row) if row is not None else None

    def list(self, conn: MemoryStore, *, period=None, limit=None, **filters) -> list[dict]:
        rows = sorted(conn.rows(self.table).values(), key=lambda r: r["id"], reverse=True)
        for col, value in filters.items():
            if col not in self.columns and col != "id":
                raise ValueError(f"cannot filter {self.table} by {col}")
            rows = [r for r in rows if r.get(col) == value]
        if period is not None and self.period_column:
            rows = [r for r in rows if period.contains(r.get(self.period_column))]
        if limit is not None:
            rows = rows[:limit]
        return [dict(r) for r in rows]

    def update(self, conn: MemoryStore, row_id: int, data: dict) -> dict | None:
        row = conn.rows(self.table).get(row_id)
        if row is None:
            return None
        row.update({c: data[c] for c in self.columns if c in data})
        return dict(row)

    def delete(self, conn: MemoryStore, row_id: int) -> bool:
        return conn.rows(self.table).pop(row_id, None) is not None


class MemoryCustomerRepo(MemoryTable, CustomerRepository):
    def find_by_phone(self, conn, phone):
        return [dict(r) for r in conn.rows(self.table).values() if r["phone"] == phone.strip()]


class MemoryVehicleRepo(MemoryTable, VehicleRepository):
    defaults = {"service_count": 0}

    def list_by_customer(self, conn, customer_id):
        return self.list(conn, customer_id=customer_id)

    def search(self, conn, *, model=None, registration_number=None):
        customers = conn.rows("customer")
        found = []
        for v in self.list(conn):
            if model and model.lower() not in v["model"].lower():
                continue
            if registration_number and registration_number.lower() not in v["registration_number"].lower():
                continue
            c = customers.get(v["customer_id"], {})
            found.append({**v, "customer_name": c.get("name"), "customer_phone": c.get("phone")})
        return found

    def add_service_count(self, conn, *, vehicle_id, delta):
        row = conn.rows(self.table).get(vehicle_id)
        if row is None:
            return None
        row["service_count"] = max(row["service_count"] + delta, 0)
        return row["service_count"]


class MemoryServiceRepo(MemoryTable, ServiceRepository):
    defaults = {"description": "", "is_offer": True, "warranty": "", "usage_count": 0}

    def find_by_name(self, conn, service_name):
        wanted = service_name.strip().lower()
        return [dict(r) for r in sorted(conn.rows(self.table).values(), key=lambda r: r["id"])
                if r["service_name"].lower() == wanted]

    def add_usage(self, conn, *, service_id, delta):
        row = conn.rows(self.table).get(service_id)
        if row is not None:
            row["usage_count"] = max(row["usage_count"] + delta, 0)


class MemoryProductRepo(MemoryTable, ProductRepository):
    defaults = {"description": "", "brand": "", "stock": 0}

    def decrease_stock(self, conn, *, product_id, qty):
        row = conn.rows(self.table).get(product_id)
        if row is None or row["stock"] < qty:
            return False
        row["stock"] -= qty
        return True

    def increase_stock(self, conn, *, product_id, qty):
        row = conn.rows(self.table).get(product_id)
        if row is None:
            return False
        row["stock"] += qty
        return True


class MemoryEmployeeRepo(MemoryTable, EmployeeRepository):
    pass


class MemorySalaryRepo(MemoryTable, SalaryRepository):
    def list_by_employee(self, conn, employee_id):
        employee = conn.rows("employee").get(employee_id, {})
        rows = sorted(self.list(conn, employee_id=employee_id), key=lambda r: r["month"], reverse=True)
        return [{**r, "employee_name": employee.get("name")} for r in rows]


class MemoryExpenseRepo(MemoryTable, ExpenseRepository):
    pass


class MemoryWarrantyRepo(MemoryTable, WarrantyRepository):
    pass


class MemoryCounterRepo(CounterRepository):
    def next_value(self, conn, name):
        counters = conn.state["counters"]
        counters[name] = counters.get(name, 0) + 1
        return counters[name]


class MemoryWorkOrderRepo(MemoryTable, WorkOrderRepository):
    def list_by_vehicle(self, conn, vehicle_id):
        rows = self.list(conn, vehicle_id=vehicle_id)
        return sorted(rows, key=lambda r: (r["created_at"], r["id"]), reverse=True)

    def delete(self, conn, row_id):
        deleted = super().delete(conn, row_id)
        if deleted:
            # ON DELETE CASCADE
            for table in (*LINE_TABLES.values(), "work_order_effect"):
                rows = conn.rows(table)
                for key in [k for k, r in rows.items() if r["order_id"] == row_id]:
                    del rows[key]
        return deleted


class MemoryLineRepo(WorkOrderLineRepository):
    def _add(self, conn, kind, order_id, position, line):
        conn.insert(LINE_TABLES[kind], {"order_id": order_id, "position": position, **line})

    def add_service(self, conn, *, order_id, position, line):
        fields = ("service_id", "service_name", "description", "price", "is_offer", "warranty")
        self._add(conn, "services", order_id, position, {k: line.get(k) for k in fields})

    def add_product(self, conn, *, order_id, position, line):
        fields = ("product_id", "product_name", "quantity", "unit_price")
        self._add(conn, "products", order_id, position, {k: line[k] for k in fields})

    def add_charge(self, conn, *, order_id, position, line):
        fields = ("description", "price", "for_service_id")
        self._add(conn, "charges", order_id, position, {k: line.get(k) for k in fields})

    def _lines_for(self, conn, kind, order_ids):
        wanted = set(order_ids)
        rows = [dict(r) for r in conn.rows(LINE_TABLES[kind]).values() if r["order_id"] in wanted]
        return sorted(rows, key=lambda r: (r["order_id"], r["position"]))

    def clear(self, conn, *, order_id, kind):
        rows = conn.rows(LINE_TABLES[kind])
        for key in [k for k, r in rows.items() if r["order_id"] == order_id]:
            del rows[key]

    def add_effect(self, conn, *, order_id, kind, target_id, amount):
        conn.insert("work_order_effect", {"order_id": order_id, "kind": kind, "target_id": target_id, "amount": amount})

    def effects_for(self, conn, order_id):
        return [dict(r) for r in conn.rows("work_order_effect").values() if r["order_id"] == order_id]

    def clear_effects(self, conn, order_id):
        rows = conn.rows("work_order_effect")
        for key in [k for k, r in rows.items() if r["order_id"] == order_id]:
            del rows[key]


def memory_repositories() -> Repositories:
    return Repositories(
        customer=MemoryCustomerRepo(),
        vehicle=MemoryVehicleRepo(),
        service=MemoryServiceRepo(),
        product=MemoryProductRepo(),
        employee=MemoryEmployeeRepo(),
        salary=MemorySalaryRepo(),
        expense=MemoryExpenseRepo(),
        warranty=MemoryWarrantyRepo(),
        counter=MemoryCounterRepo(),
        work_order=MemoryWorkOrderRepo(),
        work_order_line=MemoryLineRepo(),
    )


@pytest.fixture
def db() -> MemoryDb:
    return MemoryDb()


@pytest.fixture
def repos() -> Repositories:
    return memory_repositories()


@pytest.fixture
def business() -> BusinessConfig:
    return BusinessConfig(admin_password=ADMIN_PASSWORD)


@pytest.fixture
def app_config(business: BusinessConfig) -> AppConfig:
    return AppConfig(
        name="GarageDesk",
        log_level="INFO",
        db=DbConfig(host="localhost", port=5432, name="unused", user="unused", password="unused"),
        business=business,
        http=HttpConfig(),
    )


@pytest.fixture
def services(repos: Repositories, business: BusinessConfig):
    return build_services(repos, business)


@pytest.fixture
def catalog(db: MemoryDb, repos: Repositories) -> SimpleNamespace:
    """One customer with a car on 9 visits, two services and two products."""
    with db.transaction() as conn:
        customer = repos.customer.create(conn, {"name": "Ravi", "phone": "9876543210", "email": None})
        other = repos.customer.create(conn, {"name": "Meena", "phone": "9000000001", "email": None})
        vehicle = repos.vehicle.create(
            conn,
            {
                "customer_id": customer["id"],
                "model": "Swift",
                "brand": "Maruti",
                "year": "2019",
                "registration_number": "KA01AB1234",
                "service_count": 9,
            },
        )
        wash = repos.service.create(
            conn, {"service_name": "Foam Wash", "description": "", "price": Decimal("200.00"), "is_offer": True}
        )
        polish = repos.service.create(
            conn, {"service_name": "Polish", "description": "", "price": Decimal("300.00"), "is_offer": False}
        )
        shampoo = repos.product.create(
            conn, {"product_name": "Shampoo", "price": Decimal("100.00"), "stock": 5}
        )
        wax = repos.product.create(conn, {"product_name": "Wax", "price": Decimal("40.00"), "stock": 2})
    return SimpleNamespace(
        customer=customer,
        other_customer=other,
        vehicle=vehicle,
        wash=wash,
        polish=polish,
        shampoo=shampoo,
        wax=wax,
    )


@pytest.fixture
def client(app_config: AppConfig, db: MemoryDb, repos: Repositories):
    app = create_app(app_config, db, repos)
    app.config["TESTING"] = True
    return app.test_client()
