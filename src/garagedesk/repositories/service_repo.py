from __future__ import annotations

from psycopg import Connection

from .base import TableRepository


class ServiceRepository(TableRepository):
    """Catalog of billable services."""

    table = "service"
    columns = ("service_name", "description", "price", "is_offer", "warranty", "usage_count")

    def find_by_name(self, conn: Connection, service_name: str) -> list[dict]:
        cur = conn.execute(
            "SELECT * FROM service WHERE lower(service_name) = lower(%s) ORDER BY id;",
            (service_name.strip(),),
        )
        return cur.fetchall()

    def add_usage(self, conn: Connection, *, service_id: int, delta: int) -> None:
        conn.execute(
            """
            UPDATE service
            SET usage_count = GREATEST(usage_count + %s, 0)
            WHERE id = %s;
            """,
            (delta, service_id),
        )
