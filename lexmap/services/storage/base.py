"""Base storage class handling connection and schema orchestration."""

from __future__ import annotations

import logging
import re
import sqlite3
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Iterator, Optional

from lexmap.core.errors import CatalogUnavailableError, DuplicateEntryError

logger = logging.getLogger(__name__)

_SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA temp_store=MEMORY;",
    "PRAGMA foreign_keys=ON;",
    # Set busy timeout to reduce lock contention errors
    "PRAGMA busy_timeout=5000;",  # 5 seconds
)


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _regexp(pattern: str, value: Optional[str]) -> bool:
    # sqlite rewrites "X REGEXP Y" into regexp(Y, X)
    if value is None:
        return False
    return _compile(pattern).search(value) is not None


def _fold(value: Optional[str]) -> Optional[str]:
    # sqlite LOWER() only folds ASCII
    return value.casefold() if value is not None else None


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally (use with ESCAPE '\\')."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class StorageBase:
    """Base class for CatalogStorage providing database connection and schema setup."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._ensure_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            logger.error("Catalog connection failed for %s: %s", self.db_path, exc)
            raise CatalogUnavailableError(f"catalog unavailable: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            for pragma in _SQLITE_PRAGMAS:
                conn.execute(pragma)
            conn.create_function("REGEXP", 2, _regexp, deterministic=True)
            conn.create_function("FOLD", 1, _fold, deterministic=True)
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            raise DuplicateEntryError(str(exc)) from exc
        except sqlite3.Error as exc:
            logger.error("Catalog operation failed: %s", exc)
            raise CatalogUnavailableError(f"catalog unavailable: {exc}") from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS standard_word_roots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    cn_name TEXT NOT NULL,
                    en_abbr TEXT NOT NULL UNIQUE,
                    en_full_name TEXT,
                    associated_terms TEXT,
                    remark TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_roots_cn_name ON standard_word_roots(cn_name);

                CREATE TABLE IF NOT EXISTS standard_fields (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    field_cn_name TEXT NOT NULL,
                    field_en_name TEXT NOT NULL,
                    composition_ids TEXT NOT NULL DEFAULT '[]',
                    data_type TEXT,
                    associated_terms TEXT,
                    is_standard INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_fields_cn_name ON standard_fields(field_cn_name);
                """
            )
            if hasattr(self, "_ensure_field_columns"):
                self._ensure_field_columns(conn)  # type: ignore
