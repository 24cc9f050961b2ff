"""
CRUD routes for the catalogue and bookkeeping tables.

Every entity gets ``GET/POST /api/<name>`` and ``GET/PUT/PATCH/DELETE
/api/<name>/<id>``. Time-scoped tables (salary, expense, warranty, product)
also accept ``date``, ``month`` and ``year`` query parameters on the list route.
"""

from __future__ import annotations

from flask import Blueprint, request

from .http_helpers import current_db, current_services, ok
from .services.errors import ValidationError
from .services.periods import Period

ENTITY_NAMES = ("customer", "vehicle", "service", "product", "employee", "salary", "expense", "warranty")
TIME_SCOPED = frozenset({"salary", "expense", "warranty", "product"})


def _label(name: str) -> str:
    return name.capitalize()


def register_entity_routes(bp: Blueprint, name: str) -> None:
    def list_rows():
        period = Period.from_params(request.args) if name in TIME_SCOPED else None
        with current_db().session() as conn:
            rows = current_services().entities[name].list(conn, period)
        return ok(rows)

    def create_row():
        with current_db().transaction() as conn:
            row = current_services().entities[name].create(conn, request.get_json(silent=True))
        return ok(row, f"{_label(name)} created successfully", 201)

    def get_row(row_id: int):
        with current_db().session() as conn:
            row = current_services().entities[name].get(conn, row_id)
        return ok(row)

    def update_row(row_id: int):
        with current_db().transaction() as conn:
            row = current_services().entities[name].update(conn, row_id, request.get_json(silent=True))
        return ok(row, f"{_label(name)} updated successfully")

    def delete_row(row_id: int):
        with current_db().transaction() as conn:
            current_services().entities[name].delete(conn, row_id)
        return ok(message=f"{_label(name)} deleted successfully")

    bp.add_url_rule(f"/{name}", f"{name}_list", list_rows, methods=["GET"])
    bp.add_url_rule(f"/{name}", f"{name}_create", create_row, methods=["POST"])
    bp.add_url_rule(f"/{name}/<int:row_id>", f"{name}_get", get_row, methods=["GET"])
    bp.add_url_rule(f"/{name}/<int:row_id>", f"{name}_update", update_row, methods=["PUT", "PATCH"])
    bp.add_url_rule(f"/{name}/<int:row_id>", f"{name}_delete", delete_row, methods=["DELETE"])


def register_lookup_routes(bp: Blueprint) -> None:
    @bp.get("/customer/phone")
    def customer_by_phone():
        with current_db().session() as conn:
            rows = current_services().entities["customer"].find_by_phone(conn, request.args.get("phone", ""))
        return ok(rows)

    @bp.get("/vehicle/customer/<int:customer_id>")
    def vehicles_for_customer(customer_id: int):
        with current_db().session() as conn:
            rows = current_services().entities["vehicle"].list_by_customer(conn, customer_id)
        return ok(rows)

    @bp.get("/vehicle/search")
    def vehicle_search():
        model = request.args.get("model") or None
        plate = request.args.get("registrationNumber") or request.args.get("registration_number") or None
        if not model and not plate:
            raise ValidationError("model or registrationNumber is required")
        with current_db().session() as conn:
            rows = current_services().entities["vehicle"].search(conn, model=model, registration_number=plate)
        return ok(rows)

    @bp.get("/salary/employee/<int:employee_id>")
    def salaries_for_employee(employee_id: int):
        with current_db().session() as conn:
            rows = current_services().entities["salary"].list_by_employee(conn, employee_id)
        return ok(rows)


def register_all(bp: Blueprint) -> None:
    register_lookup_routes(bp)
    for name in ENTITY_NAMES:
        register_entity_routes(bp, name)
