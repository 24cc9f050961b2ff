from __future__ import annotations

from psycopg import Connection


class CounterRepository:
    def next_value(self, conn: Connection, name: str) -> int:
        # atomic upsert-increment; the first call for a name returns 1
        cur = conn.execute(
            """
            INSERT INTO counter(name, sequence_value)
            VALUES (%s, 1)
            ON CONFLICT (name) DO UPDATE SET
              sequence_value = counter.sequence_value + 1
            RETURNING sequence_value;
            """,
            (name,),
        )
        return int(cur.fetchone()["sequence_value"])
