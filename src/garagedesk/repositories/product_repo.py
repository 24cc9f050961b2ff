from __future__ import annotations

from psycopg import Connection

from .base import TableRepository


class ProductRepository(TableRepository):
    table = "product"
    columns = ("product_name", "description", "brand", "price", "stock")
    period_column = "created_at"

    def decrease_stock(self, conn: Connection, *, product_id: int, qty: int) -> bool:
        # single conditional statement: concurrent orders cannot both pass the check
        cur = conn.execute(
            """
            UPDATE product
            SET stock = stock - %s
            WHERE id = %s AND stock >= %s;
            """,
            (qty, product_id, qty),
        )
        return cur.rowcount == 1

    def increase_stock(self, conn: Connection, *, product_id: int, qty: int) -> bool:
        cur = conn.execute(
            "UPDATE product SET stock = stock + %s WHERE id = %s;",
            (qty, product_id),
        )
        return cur.rowcount == 1
