from __future__ import annotations

from psycopg import Connection

from .base import TableRepository


class VehicleRepository(TableRepository):
    table = "vehicle"
    columns = ("customer_id", "model", "brand", "year", "registration_number", "service_count")

    def list_by_customer(self, conn: Connection, customer_id: int) -> list[dict]:
        cur = conn.execute(
            """
            SELECT * FROM vehicle
            WHERE customer_id = %s
            ORDER BY id DESC;
            """,
            (customer_id,),
        )
        return cur.fetchall()

    def search(self, conn: Connection, *, model: str | None = None, registration_number: str | None = None) -> list[dict]:
        cur = conn.execute(
            """
            SELECT v.*, c.name AS customer_name, c.phone AS customer_phone
            FROM vehicle v
            JOIN customer c ON c.id = v.customer_id
            WHERE (%(model)s::text IS NULL OR v.model ILIKE '%%' || %(model)s || '%%')
              AND (%(reg)s::text IS NULL OR v.registration_number ILIKE '%%' || %(reg)s || '%%')
            ORDER BY v.id DESC
            LIMIT 200;
            """,
            {"model": model or None, "reg": registration_number or None},
        )
        return cur.fetchall()

    def add_service_count(self, conn: Connection, *, vehicle_id: int, delta: int) -> int | None:
        cur = conn.execute(
            """
            UPDATE vehicle
            SET service_count = GREATEST(service_count + %s, 0)
            WHERE id = %s
            RETURNING service_count;
            """,
            (delta, vehicle_id),
        )
        row = cur.fetchone()
        return None if row is None else int(row["service_count"])
