from __future__ import annotations

from .base import TableRepository


class WarrantyRepository(TableRepository):
    table = "warranty"
    columns = (
        "package_name",
        "duration_months",
        "cost",
        "allowed_visits",
        "customer_name",
        "mobile_number",
        "car_name",
        "number_plate",
        "issued_date",
        "last_due_date",
        "notes",
    )
    period_column = "issued_date"
