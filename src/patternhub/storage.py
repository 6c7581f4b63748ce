# PatternHub
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of PatternHub.
#
# PatternHub is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
PatternHub -- Durable record storage

One SQLite database (``patternhub.db``) with a table per entity kind.
Each row is a self-describing JSON document keyed by entity id:

    patterns   one row per CodePattern id
    sessions   one row per SessionMetric id
    documents  aggregate documents (key "knowledge": snapshots + insights)

Writes run in a single transaction per call, so a partially written record
is never visible. Any ``sqlite3.Error`` surfaces as ``PersistenceError``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from patternhub.errors import PersistenceError

logger = logging.getLogger("patternhub.storage")

TABLES = ("patterns", "sessions", "documents")


class RecordStore:
    """Key -> JSON document storage backed by SQLite."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    # ── Schema ───────────────────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=10)

    def _init_db(self) -> None:
        try:
            conn = self._connect()
            try:
                for table in TABLES:
                    conn.execute(f"""
                        CREATE TABLE IF NOT EXISTS {table} (
                            id TEXT PRIMARY KEY,
                            data TEXT NOT NULL,
                            updated_at TEXT NOT NULL
                        )
                    """)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot initialise database {self.db_path}: {exc}") from exc

    @staticmethod
    def _check_table(table: str) -> None:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")

    # ── Writes ───────────────────────────────────────────────────────────

    def put(self, table: str, key: str, record: Mapping[str, Any]) -> None:
        """Insert or overwrite one record."""
        self.put_many(table, {key: record})

    def put_many(self, table: str, records: Mapping[str, Mapping[str, Any]]) -> None:
        """Insert or overwrite several records in one transaction."""
        self._check_table(table)
        if not records:
            return
        now = datetime.now(timezone.utc).isoformat()
        rows = [(key, json.dumps(record, sort_keys=True), now) for key, record in records.items()]
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.executemany(
                        f"INSERT INTO {table} (id, data, updated_at) VALUES (?, ?, ?) "
                        "ON CONFLICT(id) DO UPDATE SET data = excluded.data, "
                        "updated_at = excluded.updated_at",
                        rows,
                    )
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Write to %s failed (%d records): %s", table, len(rows), exc)
            raise PersistenceError(f"Write to {table} failed: {exc}") from exc
        logger.debug("Persisted %d record(s) to %s", len(rows), table)

    # ── Reads ────────────────────────────────────────────────────────────

    def get(self, table: str, key: str) -> dict[str, Any] | None:
        self._check_table(table)
        try:
            conn = self._connect()
            try:
                row = conn.execute(f"SELECT data FROM {table} WHERE id = ?", (key,)).fetchone()
            finally:
                conn.close()
            return json.loads(row[0]) if row else None
        except (sqlite3.Error, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Read of {table}/{key} failed: {exc}") from exc

    def load_all(self, table: str) -> list[dict[str, Any]]:
        """Return every record in *table*, in insertion order."""
        self._check_table(table)
        try:
            conn = self._connect()
            try:
                rows = conn.execute(f"SELECT data FROM {table} ORDER BY rowid").fetchall()
            finally:
                conn.close()
            return [json.loads(data) for (data,) in rows]
        except (sqlite3.Error, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Read of {table} failed: {exc}") from exc

    def count(self, table: str) -> int:
        self._check_table(table)
        try:
            conn = self._connect()
            try:
                return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Count of {table} failed: {exc}") from exc
