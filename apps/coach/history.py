"""SQLite-backed audit trail of coaching runs."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence


class HistoryRecorder(Protocol):
    """Sink for run and outcome records. Callers swallow its failures."""

    def start_run(
        self, run_id: str, *, total_count: int, valid_count: int, invalid_count: int, errors: Sequence[str]
    ) -> None: ...

    def finish_run(self, run_id: str, status: str) -> None: ...

    def record_entity_outcome(
        self,
        run_id: str,
        entity_id: str,
        *,
        status: str,
        used_fallback: bool = False,
        analysis: Optional[Dict[str, Any]] = None,
        insights: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        location_ref: Optional[str] = None,
    ) -> None: ...

    def record_aggregate_outcome(
        self,
        run_id: str,
        *,
        status: str,
        used_fallback: bool = False,
        summary: Optional[Dict[str, Any]] = None,
        insights: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        location_ref: Optional[str] = None,
    ) -> None: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(payload: Any) -> Optional[str]:
    if payload is None:
        return None
    return json.dumps(payload, ensure_ascii=False)


class SQLiteHistoryStore:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        """Create a connection, ensuring the parent directory exists."""

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        con = sqlite3.connect(self.db_path)
        con.row_factory = sqlite3.Row
        return con

    def _ensure_schema(self) -> None:
        schema_sql = Path(__file__).with_name("history_schema.sql").read_text(encoding="utf-8")
        with self._connect() as con:
            con.executescript(schema_sql)

    def _execute(self, sql: str, params: tuple) -> None:
        with self._connect() as con:
            con.execute(sql, params)
            con.commit()

    def _query(self, sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
        with self._connect() as con:
            return [dict(row) for row in con.execute(sql, params).fetchall()]

    # ------------------------------------------------------------------
    # HistoryRecorder

    def start_run(
        self, run_id: str, *, total_count: int, valid_count: int, invalid_count: int, errors: Sequence[str]
    ) -> None:
        self._execute(
            "INSERT INTO runs (run_id, started_at, total_count, valid_count, invalid_count, errors_json) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (run_id, _now(), total_count, valid_count, invalid_count, _dump(list(errors))),
        )

    def finish_run(self, run_id: str, status: str) -> None:
        self._execute(
            "UPDATE runs SET status = ?, finished_at = ? WHERE run_id = ?",
            (status, _now(), run_id),
        )

    def record_entity_outcome(
        self,
        run_id: str,
        entity_id: str,
        *,
        status: str,
        used_fallback: bool = False,
        analysis: Optional[Dict[str, Any]] = None,
        insights: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        location_ref: Optional[str] = None,
    ) -> None:
        self._execute(
            "INSERT INTO student_messages "
            "(run_id, student_id, analysis_json, insights_json, status, error, used_fallback, location_ref, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                run_id,
                entity_id,
                _dump(analysis),
                _dump(insights),
                status,
                error,
                int(used_fallback),
                location_ref,
                _now(),
            ),
        )

    def record_aggregate_outcome(
        self,
        run_id: str,
        *,
        status: str,
        used_fallback: bool = False,
        summary: Optional[Dict[str, Any]] = None,
        insights: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        location_ref: Optional[str] = None,
    ) -> None:
        self._execute(
            "INSERT INTO teacher_messages "
            "(run_id, summary_json, insights_json, status, error, used_fallback, location_ref, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                run_id,
                _dump(summary),
                _dump(insights),
                status,
                error,
                int(used_fallback),
                location_ref,
                _now(),
            ),
        )

    # ------------------------------------------------------------------
    # Queries

    def list_runs(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Most recent runs first."""
        sql = "SELECT * FROM runs ORDER BY started_at DESC"
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        rows = self._query(sql, params)
        for row in rows:
            row["errors"] = json.loads(row.pop("errors_json") or "[]")
        return rows

    def entity_outcomes(self, run_id: str) -> List[Dict[str, Any]]:
        rows = self._query("SELECT * FROM student_messages WHERE run_id = ? ORDER BY id", (run_id,))
        return [self._decode_outcome(row, "analysis_json") for row in rows]

    def aggregate_outcomes(self, run_id: str) -> List[Dict[str, Any]]:
        rows = self._query("SELECT * FROM teacher_messages WHERE run_id = ? ORDER BY id", (run_id,))
        return [self._decode_outcome(row, "summary_json") for row in rows]

    @staticmethod
    def _decode_outcome(row: Dict[str, Any], snapshot_column: str) -> Dict[str, Any]:
        snapshot = row.pop(snapshot_column)
        insights = row.pop("insights_json")
        row[snapshot_column.removesuffix("_json")] = json.loads(snapshot) if snapshot else None
        row["insights"] = json.loads(insights) if insights else None
        row["used_fallback"] = bool(row["used_fallback"])
        return row


__all__ = ["HistoryRecorder", "SQLiteHistoryStore"]
