from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from psycopg import Connection

from ..repositories.customer_repo import CustomerRepository
from ..repositories.employee_repo import EmployeeRepository
from ..repositories.expense_repo import ExpenseRepository
from ..repositories.product_repo import ProductRepository
from ..repositories.salary_repo import SalaryRepository
from ..repositories.work_order_line_repo import WorkOrderLineRepository
from ..repositories.work_order_repo import WorkOrderRepository
from .periods import Period

ZERO = Decimal("0")

LEDGER_COLUMNS = (
    ("Roll Number", 12),
    ("Date", 15),
    ("Description", 30),
    ("Category", 20),
    ("Income Money IN", 15),
    ("Expense Money OUT", 15),
    ("Overall Balance", 18),
)


def _money(value) -> Decimal:
    return ZERO if value is None else Decimal(str(value))


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


class DashboardService:
    def __init__(
        self,
        *,
        order_repo: WorkOrderRepository,
        line_repo: WorkOrderLineRepository,
        expense_repo: ExpenseRepository,
        salary_repo: SalaryRepository,
        product_repo: ProductRepository,
        customer_repo: CustomerRepository,
        employee_repo: EmployeeRepository,
    ) -> None:
        self.order_repo = order_repo
        self.line_repo = line_repo
        self.expense_repo = expense_repo
        self.salary_repo = salary_repo
        self.product_repo = product_repo
        self.customer_repo = customer_repo
        self.employee_repo = employee_repo

    def summarize(self, conn: Connection, period: Period | None = None) -> dict:
        period = period or Period()
        expenses = self.expense_repo.list(conn, period=period)
        salaries = self.salary_repo.list(conn, period=period)
        orders = self.order_repo.list(conn, period=period)
        # stock on hand is a snapshot, not a period figure
        products = self.product_repo.list(conn)

        live = [o for o in orders if o["status"] != "cancelled"]
        paid = [o for o in orders if o["status"] == "paid"]
        live_ids = [o["id"] for o in live]
        paid_ids = {o["id"] for o in paid}

        service_lines = self.line_repo.services_for(conn, live_ids)
        product_lines = self.line_repo.products_for(conn, live_ids)
        charge_lines = self.line_repo.charges_for(conn, list(paid_ids))

        by_method: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for o in paid:
            by_method[o["payment_method"]] += _money(o["total_amount"])

        other_expenses = sum((_money(e["amount"]) for e in expenses), ZERO)
        salary_expenses = sum((_money(s["base_salary"]) for s in salaries), ZERO)
        total_expenses = other_expenses + salary_expenses
        total_income = sum((_money(o["total_amount"]) for o in paid), ZERO)

        return {
            "totalIncome": total_income,
            "upiIncome": by_method["upi"],
            "cashIncome": by_method["cash"],
            "bothIncome": by_method["both"],
            "servicesIncome": sum(
                (_money(s["price"]) for s in service_lines if s["order_id"] in paid_ids), ZERO
            ),
            "serviceChargesIncome": sum((_money(c["price"]) for c in charge_lines), ZERO),
            "productSalesIncome": sum((_money(o["total_product_cost"]) for o in paid), ZERO),
            "totalExpenses": total_expenses,
            "salaryExpenses": salary_expenses,
            "otherExpenses": other_expenses,
            "totalProfit": total_income - total_expenses,
            "totalStock": sum(int(p["stock"]) for p in products),
            "totalSold": sum(int(p["quantity"]) for p in product_lines),
            "totalServices": len(service_lines),
            "recordCounts": {
                "expenses": len(expenses),
                "salaries": len(salaries),
                "workOrders": len(orders),
                "paidWorkOrders": len(paid),
                "products": len(products),
            },
            "period": period.describe(),
        }

    def ledger_rows(self, conn: Connection, period: Period | None = None) -> list[dict]:
        """Expenses, salaries and paid orders as dated money movements, oldest first."""
        period = period or Period()
        customers = {c["id"]: c for c in self.customer_repo.list(conn)}
        employees = {e["id"]: e for e in self.employee_repo.list(conn)}

        rows = []
        for e in self.expense_repo.list(conn, period=period):
            rows.append(
                {
                    "date": _as_date(e["date"]),
                    "description": e["category"] or "Expense",
                    "category": e["category"],
                    "in": ZERO,
                    "out": _money(e["amount"]),
                }
            )
        for s in self.salary_repo.list(conn, period=period):
            employee = employees.get(s["employee_id"])
            rows.append(
                {
                    "date": _as_date(s["month"]),
                    "description": f"Salary ({employee['name'] if employee else ''})",
                    "category": "Salary",
                    "in": ZERO,
                    "out": _money(s["base_salary"]),
                }
            )
        for o in self.order_repo.list(conn, period=period, status="paid"):
            customer = customers.get(o["customer_id"])
            name = (customer or {}).get("name") or ""
            rows.append(
                {
                    "date": _as_date(o["created_at"]),
                    "description": f"Order {o['serial']} ({name})",
                    "category": "Bill",
                    "in": _money(o["total_amount"]),
                    "out": ZERO,
                }
            )

        rows.sort(key=lambda r: r["date"])
        balance = ZERO
        for r in rows:
            balance += r["in"] - r["out"]
            r["balance"] = balance
        return rows

    def export_ledger(self, conn: Connection, period: Period | None = None) -> bytes:
        period = period or Period()
        rows = self.ledger_rows(conn, period)

        wb = Workbook()
        ws = wb.active
        ws.title = "Transactions"
        ws.append([f"Report Period: {period.describe()}", f"Generated: {date.today().isoformat()}"])
        ws.append([title for title, _ in LEDGER_COLUMNS])
        for cell in ws[2]:
            cell.font = Font(bold=True)
        for idx, (_, width) in enumerate(LEDGER_COLUMNS, start=1):
            ws.column_dimensions[get_column_letter(idx)].width = width

        for n, r in enumerate(rows, start=1):
            ws.append(
                [n, r["date"], r["description"], r["category"], r["in"] or None, r["out"] or None, r["balance"]]
            )

        total_in = sum((r["in"] for r in rows), ZERO)
        total_out = sum((r["out"] for r in rows), ZERO)
        ws.append(["Total", None, None, None, total_in, total_out, total_in - total_out])
        for cell in ws[ws.max_row]:
            cell.font = Font(bold=True)

        buf = BytesIO()
        wb.save(buf)
        return buf.getvalue()
