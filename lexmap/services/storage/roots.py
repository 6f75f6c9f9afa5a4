"""Word root storage operations."""

from __future__ import annotations

import datetime as dt
import re
import sqlite3
from typing import Iterable, Optional, Sequence

from lexmap.core.models import WordRoot, WordRootCreate
from .base import escape_like

_ROOT_COLUMNS = "id, cn_name, en_abbr, en_full_name, associated_terms, remark, created_at"


class RootMixin:
    """Mixin for handling the standard_word_roots table."""

    def insert_root(self, payload: WordRootCreate) -> WordRoot:
        return self.insert_roots([payload])[0]

    def insert_roots(self, payloads: Sequence[WordRootCreate]) -> list[WordRoot]:
        """Insert all rows in one transaction; a single duplicate aborts the whole batch."""
        now = dt.datetime.now(dt.timezone.utc)
        created: list[WordRoot] = []
        with self.connect() as conn:  # type: ignore
            for payload in payloads:
                cursor = conn.execute(
                    """
                    INSERT INTO standard_word_roots (cn_name, en_abbr, en_full_name, associated_terms, remark, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        payload.cn_name,
                        payload.en_abbr,
                        payload.en_full_name,
                        payload.associated_terms,
                        payload.remark,
                        now.isoformat(),
                    ),
                )
                created.append(WordRoot(id=cursor.lastrowid, created_at=now, **payload.model_dump()))
        return created

    def get_root(self, root_id: int) -> Optional[WordRoot]:
        with self.connect() as conn:  # type: ignore
            row = conn.execute(
                f"SELECT {_ROOT_COLUMNS} FROM standard_word_roots WHERE id = ?", (root_id,)
            ).fetchone()
        return self._row_to_root(row) if row else None

    def update_root(self, root_id: int, payload: WordRootCreate) -> Optional[tuple[WordRoot, WordRoot]]:
        """Returns (before, after), or None when the row does not exist."""
        with self.connect() as conn:  # type: ignore
            row = conn.execute(
                f"SELECT {_ROOT_COLUMNS} FROM standard_word_roots WHERE id = ?", (root_id,)
            ).fetchone()
            if row is None:
                return None
            conn.execute(
                """
                UPDATE standard_word_roots
                SET cn_name = ?, en_abbr = ?, en_full_name = ?, associated_terms = ?, remark = ?
                WHERE id = ?
                """,
                (
                    payload.cn_name,
                    payload.en_abbr,
                    payload.en_full_name,
                    payload.associated_terms,
                    payload.remark,
                    root_id,
                ),
            )
        before = self._row_to_root(row)
        after = before.model_copy(update=payload.model_dump())
        return before, after

    def delete_root(self, root_id: int) -> Optional[WordRoot]:
        """Delete a row and return it, or None when it did not exist."""
        with self.connect() as conn:  # type: ignore
            row = conn.execute(
                f"SELECT {_ROOT_COLUMNS} FROM standard_word_roots WHERE id = ?", (root_id,)
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM standard_word_roots WHERE id = ?", (root_id,))
        return self._row_to_root(row)

    def clear_roots(self) -> int:
        with self.connect() as conn:  # type: ignore
            cursor = conn.execute("DELETE FROM standard_word_roots")
        return cursor.rowcount

    def list_roots(self) -> list[WordRoot]:
        with self.connect() as conn:  # type: ignore
            rows = conn.execute(
                f"SELECT {_ROOT_COLUMNS} FROM standard_word_roots ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [self._row_to_root(row) for row in rows]

    def all_roots(self) -> list[WordRoot]:
        """Full table in id order, used to rebuild the vocabulary and the vector index."""
        with self.connect() as conn:  # type: ignore
            rows = conn.execute(f"SELECT {_ROOT_COLUMNS} FROM standard_word_roots ORDER BY id").fetchall()
        return [self._row_to_root(row) for row in rows]

    def root_names(self) -> list[str]:
        with self.connect() as conn:  # type: ignore
            rows = conn.execute("SELECT DISTINCT cn_name FROM standard_word_roots ORDER BY cn_name").fetchall()
        return [row["cn_name"] for row in rows]

    def count_roots(self) -> int:
        with self.connect() as conn:  # type: ignore
            row = conn.execute("SELECT COUNT(*) AS total FROM standard_word_roots").fetchone()
        return int(row["total"])

    def count_roots_named(self, cn_name: str) -> int:
        with self.connect() as conn:  # type: ignore
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM standard_word_roots WHERE cn_name = ?", (cn_name,)
            ).fetchone()
        return int(row["total"])

    def find_root_for_token(self, token: str) -> Optional[WordRoot]:
        """
        Find the word root a segmented token maps to.

        A row matches when its canonical name equals the token, or when the token is a
        whole word of its synonym list (at the start or end of the list, or flanked by
        whitespace). Exact name matches win over synonym matches; ties go to the lowest id.
        """
        pattern = r"(?:^|\s)" + re.escape(token) + r"(?:\s|$)"
        with self.connect() as conn:  # type: ignore
            row = conn.execute(
                f"""
                SELECT {_ROOT_COLUMNS}, CASE WHEN cn_name = ? THEN 0 ELSE 1 END AS match_rank
                FROM standard_word_roots
                WHERE cn_name = ? OR associated_terms REGEXP ?
                ORDER BY match_rank, id
                LIMIT 1
                """,
                (token, token, pattern),
            ).fetchone()
        return self._row_to_root(row) if row else None

    def search_roots_by_text(self, query: str, limit: int = 10) -> list[WordRoot]:
        """Case-insensitive substring match on canonical name and synonyms."""
        needle = f"%{escape_like(query.casefold())}%"
        with self.connect() as conn:  # type: ignore
            rows = conn.execute(
                f"""
                SELECT {_ROOT_COLUMNS}
                FROM standard_word_roots
                WHERE FOLD(cn_name) LIKE ? ESCAPE '\\' OR FOLD(associated_terms) LIKE ? ESCAPE '\\'
                ORDER BY id
                LIMIT ?
                """,
                (needle, needle, limit),
            ).fetchall()
        return [self._row_to_root(row) for row in rows]

    def roots_by_ids(self, root_ids: Iterable[int]) -> list[WordRoot]:
        """Fetch roots keeping the order of ``root_ids``; ids that no longer exist are skipped."""
        ordered = list(root_ids)
        if not ordered:
            return []
        placeholders = ", ".join("?" for _ in set(ordered))
        with self.connect() as conn:  # type: ignore
            rows = conn.execute(
                f"SELECT {_ROOT_COLUMNS} FROM standard_word_roots WHERE id IN ({placeholders})",
                list(set(ordered)),
            ).fetchall()
        by_id = {row["id"]: self._row_to_root(row) for row in rows}
        return [by_id[root_id] for root_id in ordered if root_id in by_id]

    @staticmethod
    def _row_to_root(row: sqlite3.Row) -> WordRoot:
        return WordRoot(
            id=row["id"],
            cn_name=row["cn_name"],
            en_abbr=row["en_abbr"],
            en_full_name=row["en_full_name"],
            associated_terms=row["associated_terms"],
            remark=row["remark"],
            created_at=dt.datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        )
