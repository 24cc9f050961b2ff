from __future__ import annotations

from flask import current_app, jsonify

from .container import Services
from .db import Db


def current_db() -> Db:
    return current_app.extensions["garagedesk"]["db"]


def current_services() -> Services:
    return current_app.extensions["garagedesk"]["services"]


def ok(data=None, message: str | None = None, status: int = 200):
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def fail(message: str, status: int):
    return jsonify({"success": False, "message": message}), status
