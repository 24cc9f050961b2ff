from __future__ import annotations

from psycopg import Connection

from .base import TableRepository


class SalaryRepository(TableRepository):
    table = "salary"
    columns = ("employee_id", "month", "base_salary", "bonus", "deduction", "borrowed", "paid", "is_paid")
    period_column = "month"

    def list_by_employee(self, conn: Connection, employee_id: int) -> list[dict]:
        cur = conn.execute(
            """
            SELECT s.*, e.name AS employee_name
            FROM salary s
            JOIN employee e ON e.id = s.employee_id
            WHERE s.employee_id = %s
            ORDER BY s.month DESC;
            """,
            (employee_id,),
        )
        return cur.fetchall()
