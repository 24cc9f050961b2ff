from __future__ import annotations

from psycopg import Connection

from .base import TableRepository


class CustomerRepository(TableRepository):
    table = "customer"
    columns = ("name", "phone", "email")

    def find_by_phone(self, conn: Connection, phone: str) -> list[dict]:
        cur = conn.execute(
            """
            SELECT id, name, phone, email, created_at
            FROM customer
            WHERE phone = %s;
            """,
            (phone.strip(),),
        )
        return cur.fetchall()
