from __future__ import annotations

from psycopg import Connection

from .base import TableRepository


class WorkOrderRepository(TableRepository):
    table = "work_order"
    columns = (
        "serial",
        "customer_id",
        "vehicle_id",
        "status",
        "discount_type",
        "discount_value",
        "discount_amount",
        "total_service_charge",
        "total_product_cost",
        "total_amount",
        "payment_method",
        "cash_amount",
        "upi_amount",
        "created_at",
        "updated_at",
    )
    period_column = "created_at"

    def list_by_vehicle(self, conn: Connection, vehicle_id: int) -> list[dict]:
        cur = conn.execute(
            """
            SELECT * FROM work_order
            WHERE vehicle_id = %s
            ORDER BY created_at DESC, id DESC;
            """,
            (vehicle_id,),
        )
        return cur.fetchall()
