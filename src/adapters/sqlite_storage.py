"""SQLite storage adapter.

Implements the core RecordStore port. The scanner side of the media server
appends change records to ``CurrNewsletterData``; a newsletter cycle reads one
snapshot of that table and, after a successful send, moves it into
``ArchiveData``.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from core.models import ChangeRecord, EventType, ItemType

LOGGER = logging.getLogger(__name__)

CURRENT_TABLE = "CurrNewsletterData"
ARCHIVE_TABLE = "ArchiveData"

# Column name -> SQL type. Insertion order is the table's column order.
_COLUMNS = {
    "title": "TEXT",
    "item_type": "TEXT",
    "event_type": "TEXT",
    "library_id": "TEXT",
    "season": "INTEGER",
    "episode": "INTEGER",
    "item_id": "TEXT",
    "overview": "TEXT",
    "image_url": "TEXT",
    "poster_path": "TEXT",
    "premiere_year": "TEXT",
    "runtime_minutes": "INTEGER",
    "official_rating": "TEXT",
    "community_rating": "REAL",
    "recorded_at": "TIMESTAMP",
}


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the RecordStore contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        # Highest row id returned by the last load_records().
        self._snapshot_id: Optional[int] = None

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _existing_columns(self, conn: sqlite3.Connection, table: str) -> set[str]:
        return {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}

    def init_db(self) -> None:
        """Create both tables and add any columns missing from older databases.

        Both tables share one layout so archiving is a plain row copy. ``id``
        preserves the order records were appended in, which is the order
        the newsletter deduplicates by.
        """

        columns_sql = ",\n".join(f"{name} {sql_type}" for name, sql_type in _COLUMNS.items())
        with self._connect() as conn:
            for table in (CURRENT_TABLE, ARCHIVE_TABLE):
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        {columns_sql}
                    )
                    """
                )
                existing = self._existing_columns(conn, table)
                for name, sql_type in _COLUMNS.items():
                    if name not in existing:
                        LOGGER.info("Adding column %s to %s", name, table)
                        conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {sql_type}")

    def add_record(self, record: ChangeRecord) -> None:
        """Append a change record to the current snapshot."""

        values = {
            "title": record.title,
            "item_type": record.item_type.value if record.item_type else None,
            "event_type": record.event_type.value,
            "library_id": record.library_id,
            "season": record.season,
            "episode": record.episode,
            "item_id": record.item_id,
            "overview": record.overview,
            "image_url": record.image_url,
            "poster_path": record.poster_path,
            "premiere_year": record.premiere_year,
            "runtime_minutes": record.runtime_minutes,
            "official_rating": record.official_rating,
            "community_rating": record.community_rating,
            "recorded_at": datetime.now(timezone.utc).isoformat(),
        }
        names = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO {CURRENT_TABLE} ({names}) VALUES ({placeholders})",
                tuple(values.values()),
            )

    def _row_to_record(self, row: sqlite3.Row) -> Optional[ChangeRecord]:
        event_type = EventType.parse(row["event_type"])
        if event_type is None:
            LOGGER.warning(
                "Skipping record %s (%s): unknown event type %r",
                row["id"],
                row["title"],
                row["event_type"],
            )
            return None

        # Unknown item types are kept as None and reported by the aggregator.
        return ChangeRecord(
            title=row["title"],
            item_type=ItemType.parse(row["item_type"]),
            event_type=event_type,
            library_id=row["library_id"] or "",
            season=row["season"] or 0,
            episode=row["episode"] or 0,
            item_id=row["item_id"] or "",
            overview=row["overview"] or "",
            image_url=row["image_url"] or "",
            poster_path=row["poster_path"] or "",
            premiere_year=row["premiere_year"] or "",
            runtime_minutes=row["runtime_minutes"] or 0,
            official_rating=row["official_rating"] or "",
            community_rating=row["community_rating"],
        )

    def load_records(self) -> List[ChangeRecord]:
        """Return the current snapshot in insertion order.

        The snapshot is remembered so ``archive_current`` leaves rows appended
        afterwards for the next cycle.
        """

        with self._connect() as conn:
            rows = conn.execute(f"SELECT * FROM {CURRENT_TABLE} ORDER BY id").fetchall()
        self._snapshot_id = rows[-1]["id"] if rows else 0
        records = []
        for row in rows:
            record = self._row_to_record(row)
            if record is not None:
                records.append(record)
        return records

    def is_populated(self) -> bool:
        with self._connect() as conn:
            row = conn.execute(f"SELECT 1 FROM {CURRENT_TABLE} LIMIT 1").fetchone()
        return row is not None

    def archive_current(self) -> int:
        """Move the last loaded snapshot into the archive and return the row count.

        Only rows up to the last ``load_records`` call are moved; without a
        loaded snapshot every current row is. Copy and delete run in one
        transaction, so a failure leaves the snapshot untouched.
        """

        names = ", ".join(_COLUMNS)
        with self._connect() as conn:
            up_to = self._snapshot_id
            if up_to is None:
                up_to = conn.execute(f"SELECT COALESCE(MAX(id), 0) FROM {CURRENT_TABLE}").fetchone()[0]
            conn.execute(
                f"INSERT INTO {ARCHIVE_TABLE} ({names}) "
                f"SELECT {names} FROM {CURRENT_TABLE} WHERE id <= ? ORDER BY id",
                (up_to,),
            )
            cur = conn.execute(f"DELETE FROM {CURRENT_TABLE} WHERE id <= ?", (up_to,))
        self._snapshot_id = None
        return cur.rowcount
