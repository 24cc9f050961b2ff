from __future__ import annotations

from .base import TableRepository


class EmployeeRepository(TableRepository):
    table = "employee"
    columns = ("name", "phone", "email")
