from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

from flask import Blueprint, Flask, jsonify, request, send_file
from flask.json.provider import DefaultJSONProvider
from psycopg import errors as pg_errors
from werkzeug.exceptions import HTTPException

from . import schemas
from .config import AppConfig
from .container import Repositories, build_services
from .db import Db, DbError
from .entity_routes import register_all
from .http_helpers import current_db, current_services, fail, ok
from .services.entity_service import validate_payload
from .services.errors import NotFoundError, ServiceError
from .services.periods import Period

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

api = Blueprint("api", __name__, url_prefix="/api")


class ApiJSONProvider(DefaultJSONProvider):
    sort_keys = False

    @staticmethod
    def default(o):
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


@api.get("/workorder")
def work_orders_list():
    period = Period.from_params(request.args)
    with current_db().session() as conn:
        rows = current_services().work_orders.list(conn, period)
    return ok(rows)


@api.post("/workorder")
def work_orders_create():
    payload = validate_payload(schemas.WorkOrderCreate, request.get_json(silent=True))
    data = payload.to_input()
    with current_db().transaction() as conn:
        order = current_services().work_orders.create(conn, data)
    return ok(order, "Work Order created successfully", 201)


@api.get("/workorder/<int:order_id>")
def work_orders_get(order_id: int):
    with current_db().session() as conn:
        order = current_services().work_orders.get(conn, order_id)
    if order is None:
        raise NotFoundError(f"work order {order_id} not found")
    return ok(order)


@api.get("/workorder/vehicle/<int:vehicle_id>")
def work_orders_for_vehicle(vehicle_id: int):
    with current_db().session() as conn:
        rows = current_services().work_orders.list_for_vehicle(conn, vehicle_id)
    return ok(rows)


@api.route("/workorder/<int:order_id>", methods=["PUT", "PATCH"])
def work_orders_update(order_id: int):
    payload = validate_payload(schemas.WorkOrderUpdate, request.get_json(silent=True))
    patch = payload.to_patch()
    with current_db().transaction() as conn:
        order = current_services().work_orders.update(conn, order_id, patch)
    return ok(order, "Work Order updated successfully")


@api.delete("/workorder/<int:order_id>")
def work_orders_delete(order_id: int):
    with current_db().transaction() as conn:
        deleted = current_services().work_orders.delete(conn, order_id)
    if not deleted:
        raise NotFoundError(f"work order {order_id} not found")
    return ok(message="Work Order deleted successfully")


@api.get("/dashboard")
def dashboard():
    period = Period.from_params(request.args)
    with current_db().session() as conn:
        stats = current_services().dashboard.summarize(conn, period)
    return jsonify(stats)


def _export_name(period: Period) -> str:
    if period.day:
        return f"dashboard-{period.day.isoformat()}.xlsx"
    if period.month:
        return f"dashboard-{period.year}-{period.month:02d}.xlsx"
    if period.year:
        return f"dashboard-{period.year}.xlsx"
    return "dashboard-all-time.xlsx"


@api.get("/dashboard/export")
def dashboard_export():
    period = Period.from_params(request.args)
    with current_db().session() as conn:
        content = current_services().dashboard.export_ledger(conn, period)
    return send_file(
        BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=_export_name(period),
    )


@api.post("/customer/verify-password")
def verify_password():
    body = request.get_json(silent=True)
    password = body.get("password") if isinstance(body, dict) else None
    if not password:
        return fail("Password is required", 400)
    if current_services().gate.verify(str(password)):
        return jsonify({"success": True}), 200
    logger.warning("admin password check failed from %s", request.remote_addr)
    return fail("Invalid password", 401)


register_all(api)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ServiceError)
    def handle_service_error(e: ServiceError):
        return fail(str(e), e.status_code)

    @app.errorhandler(pg_errors.UniqueViolation)
    def handle_unique(e):
        logger.info("unique violation: %s", e)
        return fail("A record with the same unique value already exists", 409)

    @app.errorhandler(pg_errors.ForeignKeyViolation)
    def handle_foreign_key(e):
        logger.info("foreign key violation: %s", e)
        return fail("The record is still referenced by other records or refers to a missing one", 409)

    @app.errorhandler(pg_errors.CheckViolation)
    def handle_check(e):
        logger.info("check violation: %s", e)
        return fail("A value is out of its allowed range", 400)

    @app.errorhandler(DbError)
    def handle_db_error(e: DbError):
        return fail(str(e), 500)

    @app.errorhandler(HTTPException)
    def handle_http(e: HTTPException):
        return fail(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return fail("Internal server error", 500)


def create_app(cfg: AppConfig, db: Db, repos: Repositories | None = None) -> Flask:
    app = Flask(__name__)
    app.json = ApiJSONProvider(app)
    services = build_services(repos or Repositories(), cfg.business)
    app.extensions["garagedesk"] = {"db": db, "services": services, "config": cfg}

    @app.get("/")
    def index():
        return jsonify({"message": f"{cfg.name} API running"})

    app.register_blueprint(api)
    register_error_handlers(app)
    return app
