from __future__ import annotations

from psycopg import Connection

from ..repositories.counter_repo import CounterRepository


def format_serial(prefix: str, value: int, width: int = 3) -> str:
    # values wider than ``width`` are printed in full
    return f"{prefix}-{value:0{width}d}"


class SequenceGenerator:
    def __init__(
        self,
        counter_repo: CounterRepository,
        *,
        name: str = "work_order_sequence",
        prefix: str = "INV",
        width: int = 3,
    ) -> None:
        self.counter_repo = counter_repo
        self.name = name
        self.prefix = prefix
        self.width = width

    def next_value(self, conn: Connection, name: str | None = None) -> int:
        return self.counter_repo.next_value(conn, name or self.name)

    def next_serial(self, conn: Connection) -> str:
        return format_serial(self.prefix, self.next_value(conn), self.width)
