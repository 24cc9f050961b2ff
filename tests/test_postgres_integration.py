"""Runs the real repositories against PostgreSQL.

Set GARAGEDESK_TEST_DSN to a scratch database, e.g.
``host=127.0.0.1 dbname=garagedesk_test user=postgres password=postgres``.
Tables are truncated before each test.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from psycopg.conninfo import conninfo_to_dict

from garagedesk.config import BusinessConfig, DbConfig
from garagedesk.container import Repositories, build_services
from garagedesk.db import Db
from garagedesk.domain import ProductSelection, ServiceSelection, WorkOrderInput, WorkOrderPatch
from garagedesk.services.errors import InventoryError
from garagedesk.services.periods import Period

DSN = os.environ.get("GARAGEDESK_TEST_DSN")

pytestmark = pytest.mark.skipif(not DSN, reason="GARAGEDESK_TEST_DSN not set")

TABLES = (
    "work_order_effect, work_order_charge, work_order_product, work_order_service, work_order, "
    "warranty, expense, salary, employee, product, service, vehicle, customer, counter"
)


def _db_from_dsn(dsn: str) -> Db:
    params = conninfo_to_dict(dsn)
    return Db(
        DbConfig(
            host=params.get("host", "127.0.0.1"),
            port=int(params.get("port", 5432)),
            name=params["dbname"],
            user=params.get("user", "postgres"),
            password=params.get("password", ""),
            sslmode=params.get("sslmode", "disable"),
        )
    )


@pytest.fixture(scope="module")
def pg() -> Db:
    db = _db_from_dsn(DSN)
    db.apply_schema()
    return db


@pytest.fixture
def pg_env(pg: Db):
    with pg.transaction() as conn:
        conn.execute(f"TRUNCATE {TABLES} RESTART IDENTITY CASCADE;")
    repos = Repositories()
    services = build_services(repos, BusinessConfig(admin_password="x"))
    with pg.transaction() as conn:
        customer = repos.customer.create(conn, {"name": "Ravi", "phone": "9876543210"})
        vehicle = repos.vehicle.create(
            conn, {"customer_id": customer["id"], "model": "Swift", "registration_number": "KA01AB1234", "service_count": 9}
        )
        wash = repos.service.create(conn, {"service_name": "Foam Wash", "price": Decimal("200"), "is_offer": True})
        shampoo = repos.product.create(conn, {"product_name": "Shampoo", "price": Decimal("100"), "stock": 5})
    return pg, repos, services, customer, vehicle, wash, shampoo


def test_schema_can_be_applied_twice(pg: Db) -> None:
    pg.apply_schema()


def test_order_round_trip(pg_env) -> None:
    db, repos, services, customer, vehicle, wash, shampoo = pg_env
    with db.transaction() as conn:
        order = services.work_orders.create(
            conn,
            WorkOrderInput(
                customer_id=customer["id"],
                vehicle_id=vehicle["id"],
                services=[ServiceSelection(service_id=wash["id"])],
                products=[ProductSelection(product_id=shampoo["id"], quantity=5)],
            ),
        )
    assert order["serial"] == "INV-001"
    assert order["total_amount"] == Decimal("700.00")

    with db.session() as conn:
        assert repos.product.get(conn, shampoo["id"])["stock"] == 0
        assert repos.vehicle.get(conn, vehicle["id"])["service_count"] == 10
        stats = services.dashboard.summarize(conn, Period())
    assert stats["totalSold"] == 5

    with db.transaction() as conn:
        services.work_orders.update(conn, order["id"], WorkOrderPatch(status="cancelled"))
    with db.session() as conn:
        assert repos.product.get(conn, shampoo["id"])["stock"] == 5
        assert repos.vehicle.get(conn, vehicle["id"])["service_count"] == 9


def test_short_stock_rolls_back(pg_env) -> None:
    db, repos, services, customer, _, _, shampoo = pg_env
    with pytest.raises(InventoryError):
        with db.transaction() as conn:
            services.work_orders.create(
                conn,
                WorkOrderInput(customer_id=customer["id"], products=[ProductSelection(product_id=shampoo["id"], quantity=6)]),
            )
    with db.session() as conn:
        assert repos.product.get(conn, shampoo["id"])["stock"] == 5
        assert repos.work_order.list(conn) == []


def test_concurrent_orders_get_distinct_serials(pg_env) -> None:
    db, _, services, customer, _, _, _ = pg_env

    def create_one(_: int) -> str:
        with db.transaction() as conn:
            return services.work_orders.create(conn, WorkOrderInput(customer_id=customer["id"]))["serial"]

    with ThreadPoolExecutor(max_workers=8) as pool:
        serials = list(pool.map(create_one, range(20)))

    assert len(set(serials)) == 20
    assert sorted(serials) == [f"INV-{n:03d}" for n in range(1, 21)]


def test_concurrent_orders_never_oversell(pg_env) -> None:
    db, repos, services, customer, _, _, shampoo = pg_env

    def buy_two(_: int) -> bool:
        try:
            with db.transaction() as conn:
                services.work_orders.create(
                    conn,
                    WorkOrderInput(customer_id=customer["id"], products=[ProductSelection(product_id=shampoo["id"], quantity=2)]),
                )
            return True
        except InventoryError:
            return False

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(buy_two, range(6)))

    assert results.count(True) == 2
    with db.session() as conn:
        assert repos.product.get(conn, shampoo["id"])["stock"] == 1
