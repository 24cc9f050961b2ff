from __future__ import annotations

from typing import Any, Mapping

from psycopg import Connection
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..repositories.base import TableRepository
from .errors import MissingReferenceError, NotFoundError, ValidationError
from .loyalty import loyalty_label
from .periods import Period


def validation_message(err: PydanticValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e["loc"])
        parts.append(f"{loc}: {e['msg']}" if loc else e["msg"])
    return "; ".join(parts)


def validate_payload(schema: type[BaseModel], payload: Any) -> BaseModel:
    if not isinstance(payload, Mapping):
        raise ValidationError("request body must be a JSON object")
    try:
        return schema.model_validate(dict(payload))
    except PydanticValidationError as e:
        raise ValidationError(validation_message(e)) from e


class EntityService:
    """Validated CRUD for one table.

    ``references`` maps a foreign key column to the repository that must
    contain the referenced row.
    """

    def __init__(
        self,
        name: str,
        repo: TableRepository,
        schema: type[BaseModel],
        *,
        references: dict[str, TableRepository] | None = None,
    ) -> None:
        self.name = name
        self.repo = repo
        self.schema = schema
        self.references = references or {}

    def present(self, row: dict) -> dict:
        return row

    def _check_references(self, conn: Connection, data: dict) -> None:
        for column, repo in self.references.items():
            ref_id = data.get(column)
            if ref_id is not None and repo.get(conn, ref_id) is None:
                raise MissingReferenceError(f"{column.removesuffix('_id')} {ref_id} not found")

    def create(self, conn: Connection, payload: Any) -> dict:
        data = validate_payload(self.schema, payload).model_dump()
        self._check_references(conn, data)
        return self.present(self.repo.create(conn, data))

    def get(self, conn: Connection, row_id: int) -> dict:
        row = self.repo.get(conn, row_id)
        if row is None:
            raise NotFoundError(f"{self.name} {row_id} not found")
        return self.present(row)

    def list(self, conn: Connection, period: Period | None = None) -> list[dict]:
        return [self.present(r) for r in self.repo.list(conn, period=period)]

    def update(self, conn: Connection, row_id: int, payload: Any) -> dict:
        existing = self.repo.get(conn, row_id)
        if existing is None:
            raise NotFoundError(f"{self.name} {row_id} not found")
        if not isinstance(payload, Mapping):
            raise ValidationError("request body must be a JSON object")

        # validate the merged row so cross-field rules still hold after a partial patch
        merged = validate_payload(self.schema, {**existing, **payload}).model_dump()
        changes = {k: v for k, v in merged.items() if k in payload}
        self._check_references(conn, changes)
        return self.present(self.repo.update(conn, row_id, changes))

    def delete(self, conn: Connection, row_id: int) -> None:
        if not self.repo.delete(conn, row_id):
            raise NotFoundError(f"{self.name} {row_id} not found")


class CustomerService(EntityService):
    def find_by_phone(self, conn: Connection, phone: str) -> list[dict]:
        if not phone or not phone.strip():
            raise ValidationError("phone is required")
        return self.repo.find_by_phone(conn, phone)


class VehicleService(EntityService):
    def __init__(self, *args: Any, free_service_threshold: int = 10, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.free_service_threshold = free_service_threshold

    def present(self, row: dict) -> dict:
        return {**row, "loyalty": loyalty_label(int(row.get("service_count") or 0), self.free_service_threshold)}

    def list_by_customer(self, conn: Connection, customer_id: int) -> list[dict]:
        return [self.present(r) for r in self.repo.list_by_customer(conn, customer_id)]

    def search(self, conn: Connection, *, model: str | None = None, registration_number: str | None = None) -> list[dict]:
        rows = self.repo.search(conn, model=model, registration_number=registration_number)
        return [self.present(r) for r in rows]


class SalaryService(EntityService):
    def list_by_employee(self, conn: Connection, employee_id: int) -> list[dict]:
        return self.repo.list_by_employee(conn, employee_id)
