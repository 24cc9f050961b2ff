from __future__ import annotations

from typing import Any

from psycopg import Connection, sql

from ..services.periods import Period


class TableRepository:
    """Plain CRUD over one table; rows come back as dicts (dict_row factory).

    Subclasses set ``table`` and the writable ``columns``; ``period_column``
    enables :class:`Period` filtering on ``list``.
    """

    table: str = ""
    columns: tuple[str, ...] = ()
    period_column: str | None = None

    def _writable(self, data: dict) -> list[str]:
        return [c for c in self.columns if c in data]

    def create(self, conn: Connection, data: dict) -> dict:
        cols = self._writable(data)
        query = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals}) RETURNING *;").format(
            table=sql.Identifier(self.table),
            cols=sql.SQL(", ").join(map(sql.Identifier, cols)),
            vals=sql.SQL(", ").join(sql.Placeholder() * len(cols)),
        )
        cur = conn.execute(query, [data[c] for c in cols])
        return cur.fetchone()

    def get(self, conn: Connection, row_id: int) -> dict | None:
        query = sql.SQL("SELECT * FROM {table} WHERE id = %s;").format(table=sql.Identifier(self.table))
        return conn.execute(query, (row_id,)).fetchone()

    def list(
        self,
        conn: Connection,
        *,
        period: Period | None = None,
        limit: int | None = None,
        **filters: Any,
    ) -> list[dict]:
        where: list[sql.Composable] = []
        params: list[Any] = []

        for col, value in filters.items():
            if col not in self.columns and col != "id":
                raise ValueError(f"cannot filter {self.table} by {col}")
            where.append(sql.SQL("{} = %s").format(sql.Identifier(col)))
            params.append(value)

        bounds = period.bounds() if period is not None else None
        if bounds is not None and self.period_column:
            where.append(sql.SQL("{col} >= %s AND {col} < %s").format(col=sql.Identifier(self.period_column)))
            params.extend(bounds)

        query = sql.SQL("SELECT * FROM {table}").format(table=sql.Identifier(self.table))
        if where:
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(where)
        query += sql.SQL(" ORDER BY id DESC")
        if limit is not None:
            query += sql.SQL(" LIMIT %s")
            params.append(limit)

        return conn.execute(query, params).fetchall()

    def update(self, conn: Connection, row_id: int, data: dict) -> dict | None:
        cols = self._writable(data)
        if not cols:
            return self.get(conn, row_id)
        query = sql.SQL("UPDATE {table} SET {assignments} WHERE id = %s RETURNING *;").format(
            table=sql.Identifier(self.table),
            assignments=sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(c)) for c in cols),
        )
        cur = conn.execute(query, [data[c] for c in cols] + [row_id])
        return cur.fetchone()

    def delete(self, conn: Connection, row_id: int) -> bool:
        query = sql.SQL("DELETE FROM {table} WHERE id = %s;").format(table=sql.Identifier(self.table))
        cur = conn.execute(query, (row_id,))
        return cur.rowcount == 1
