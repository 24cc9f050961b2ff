from __future__ import annotations

from psycopg import Connection, sql

from ..domain import EffectKind

LINE_TABLES = {
    "services": "work_order_service",
    "products": "work_order_product",
    "charges": "work_order_charge",
}


class WorkOrderLineRepository:
    """Service, product and charge lines of work orders plus the side-effect ledger."""

    def add_service(self, conn: Connection, *, order_id: int, position: int, line: dict) -> None:
        conn.execute(
            """
            INSERT INTO work_order_service(order_id, position, service_id, service_name, description, price, is_offer, warranty)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s);
            """,
            (
                order_id,
                position,
                line["service_id"],
                line["service_name"],
                line.get("description") or "",
                line["price"],
                bool(line["is_offer"]),
                line.get("warranty") or "",
            ),
        )

    def add_product(self, conn: Connection, *, order_id: int, position: int, line: dict) -> None:
        conn.execute(
            """
            INSERT INTO work_order_product(order_id, position, product_id, product_name, quantity, unit_price)
            VALUES (%s, %s, %s, %s, %s, %s);
            """,
            (order_id, position, line["product_id"], line["product_name"], line["quantity"], line["unit_price"]),
        )

    def add_charge(self, conn: Connection, *, order_id: int, position: int, line: dict) -> None:
        conn.execute(
            """
            INSERT INTO work_order_charge(order_id, position, description, price, for_service_id)
            VALUES (%s, %s, %s, %s, %s);
            """,
            (order_id, position, line["description"], line["price"], line.get("for_service_id")),
        )

    def _lines_for(self, conn: Connection, kind: str, order_ids: list[int]) -> list[dict]:
        if not order_ids:
            return []
        query = sql.SQL("SELECT * FROM {table} WHERE order_id = ANY(%s) ORDER BY order_id, position;").format(
            table=sql.Identifier(LINE_TABLES[kind])
        )
        return conn.execute(query, (list(order_ids),)).fetchall()

    def services_for(self, conn: Connection, order_ids: list[int]) -> list[dict]:
        return self._lines_for(conn, "services", order_ids)

    def products_for(self, conn: Connection, order_ids: list[int]) -> list[dict]:
        return self._lines_for(conn, "products", order_ids)

    def charges_for(self, conn: Connection, order_ids: list[int]) -> list[dict]:
        return self._lines_for(conn, "charges", order_ids)

    def clear(self, conn: Connection, *, order_id: int, kind: str) -> None:
        query = sql.SQL("DELETE FROM {table} WHERE order_id = %s;").format(table=sql.Identifier(LINE_TABLES[kind]))
        conn.execute(query, (order_id,))

    def add_effect(self, conn: Connection, *, order_id: int, kind: EffectKind, target_id: int, amount: int) -> None:
        conn.execute(
            """
            INSERT INTO work_order_effect(order_id, kind, target_id, amount)
            VALUES (%s, %s, %s, %s);
            """,
            (order_id, kind, target_id, amount),
        )

    def effects_for(self, conn: Connection, order_id: int) -> list[dict]:
        cur = conn.execute(
            "SELECT kind, target_id, amount FROM work_order_effect WHERE order_id = %s;",
            (order_id,),
        )
        return cur.fetchall()

    def clear_effects(self, conn: Connection, order_id: int) -> None:
        conn.execute("DELETE FROM work_order_effect WHERE order_id = %s;", (order_id,))
