"""Standard field storage operations."""

from __future__ import annotations

import datetime as dt
import json
import sqlite3
from typing import Optional

from lexmap.core.models import StandardField, StandardFieldCreate
from .base import escape_like

_FIELD_COLUMNS = (
    "id, field_cn_name, field_en_name, composition_ids, data_type, associated_terms, is_standard, created_at"
)


class FieldMixin:
    """Mixin for handling the standard_fields table."""

    def _ensure_field_columns(self, conn: sqlite3.Connection) -> None:
        # Older catalogs were created before fields carried synonyms or the standard flag.
        existing = {row["name"] for row in conn.execute("PRAGMA table_info(standard_fields)").fetchall()}

        def add_column(name: str, definition: str) -> None:
            if name not in existing:
                conn.execute(f"ALTER TABLE standard_fields ADD COLUMN {name} {definition}")

        add_column("associated_terms", "TEXT")
        add_column("is_standard", "INTEGER NOT NULL DEFAULT 0")

    def insert_field(self, payload: StandardFieldCreate) -> StandardField:
        now = dt.datetime.now(dt.timezone.utc)
        with self.connect() as conn:  # type: ignore
            cursor = conn.execute(
                """
                INSERT INTO standard_fields (
                    field_cn_name, field_en_name, composition_ids, data_type, associated_terms, is_standard, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    payload.field_cn_name,
                    payload.field_en_name,
                    json.dumps(payload.composition_ids),
                    payload.data_type,
                    payload.associated_terms,
                    1 if payload.is_standard else 0,
                    now.isoformat(),
                ),
            )
        return StandardField(id=cursor.lastrowid, created_at=now, **payload.model_dump())

    def get_field(self, field_id: int) -> Optional[StandardField]:
        with self.connect() as conn:  # type: ignore
            row = conn.execute(f"SELECT {_FIELD_COLUMNS} FROM standard_fields WHERE id = ?", (field_id,)).fetchone()
        return self._row_to_field(row) if row else None

    def update_field(self, field_id: int, payload: StandardFieldCreate) -> Optional[StandardField]:
        with self.connect() as conn:  # type: ignore
            row = conn.execute(f"SELECT {_FIELD_COLUMNS} FROM standard_fields WHERE id = ?", (field_id,)).fetchone()
            if row is None:
                return None
            conn.execute(
                """
                UPDATE standard_fields
                SET field_cn_name = ?, field_en_name = ?, composition_ids = ?, data_type = ?,
                    associated_terms = ?, is_standard = ?
                WHERE id = ?
                """,
                (
                    payload.field_cn_name,
                    payload.field_en_name,
                    json.dumps(payload.composition_ids),
                    payload.data_type,
                    payload.associated_terms,
                    1 if payload.is_standard else 0,
                    field_id,
                ),
            )
        return self._row_to_field(row).model_copy(update=payload.model_dump())

    def delete_field(self, field_id: int) -> Optional[StandardField]:
        with self.connect() as conn:  # type: ignore
            row = conn.execute(f"SELECT {_FIELD_COLUMNS} FROM standard_fields WHERE id = ?", (field_id,)).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM standard_fields WHERE id = ?", (field_id,))
        return self._row_to_field(row)

    def clear_fields(self) -> int:
        with self.connect() as conn:  # type: ignore
            cursor = conn.execute("DELETE FROM standard_fields")
        return cursor.rowcount

    def list_fields(self) -> list[StandardField]:
        with self.connect() as conn:  # type: ignore
            rows = conn.execute(
                f"SELECT {_FIELD_COLUMNS} FROM standard_fields ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [self._row_to_field(row) for row in rows]

    def all_fields(self) -> list[StandardField]:
        with self.connect() as conn:  # type: ignore
            rows = conn.execute(f"SELECT {_FIELD_COLUMNS} FROM standard_fields ORDER BY id").fetchall()
        return [self._row_to_field(row) for row in rows]

    def count_fields(self) -> int:
        with self.connect() as conn:  # type: ignore
            row = conn.execute("SELECT COUNT(*) AS total FROM standard_fields").fetchone()
        return int(row["total"])

    def search_fields_by_text(self, query: str, limit: int = 10) -> list[StandardField]:
        """Case-insensitive substring match on field name and synonyms."""
        needle = f"%{escape_like(query.casefold())}%"
        with self.connect() as conn:  # type: ignore
            rows = conn.execute(
                f"""
                SELECT {_FIELD_COLUMNS}
                FROM standard_fields
                WHERE FOLD(field_cn_name) LIKE ? ESCAPE '\\' OR FOLD(associated_terms) LIKE ? ESCAPE '\\'
                ORDER BY id
                LIMIT ?
                """,
                (needle, needle, limit),
            ).fetchall()
        return [self._row_to_field(row) for row in rows]

    @staticmethod
    def _row_to_field(row: sqlite3.Row) -> StandardField:
        raw_ids = row["composition_ids"]
        try:
            composition_ids = [int(value) for value in json.loads(raw_ids)] if raw_ids else []
        except (json.JSONDecodeError, TypeError, ValueError):
            composition_ids = []
        return StandardField(
            id=row["id"],
            field_cn_name=row["field_cn_name"],
            field_en_name=row["field_en_name"],
            composition_ids=composition_ids,
            data_type=row["data_type"],
            associated_terms=row["associated_terms"],
            is_standard=bool(row["is_standard"]),
            created_at=dt.datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        )
