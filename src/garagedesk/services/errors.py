from __future__ import annotations


class ServiceError(Exception):
    """Base class for business rule failures surfaced to API callers."""

    status_code = 400


class ValidationError(ServiceError):
    pass


class MissingReferenceError(ServiceError):
    """A referenced customer, vehicle, service or product does not exist."""


class InventoryError(ServiceError):
    """A product line asks for more units than are in stock."""


class NotFoundError(ServiceError):
    status_code = 404
