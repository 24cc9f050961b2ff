from __future__ import annotations

from .base import TableRepository


class ExpenseRepository(TableRepository):
    table = "expense"
    columns = ("category", "amount", "date")
    period_column = "date"
