"""
nanobrain Credit Ledger

SQLite-backed persistence for the memory economy. One database file per
memory directory (``<memory_dir>/engine.db``) holding:

- credit_records: per-memory trust score
- credit_events: append-only audit of every outcome-driven score change
- turn_records: retrieval batches awaiting an outcome
- lifecycle_log: append-only record of decay/promote/consolidate/prune
- contradictions: flagged conflicting entity pairs

The ledger is row-level storage only; scoring rules live in CreditTracker and
LifecycleEngine, which receive a ledger instance explicitly.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Union

from nanobrain.memory.schemas import (
    CreditEvent,
    CreditRecord,
    LifecycleLogEntry,
    ScoredId,
    TurnRecord,
)

LEDGER_FILENAME = "engine.db"


class CreditLedger:
    """Transactional store for credit records, turns, events and the lifecycle log."""

    SCHEMA_VERSION = 1

    TABLES = (
        "credit_records", "credit_events", "turn_records",
        "lifecycle_log", "contradictions",
    )

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None
        self._ensure_schema()

    @classmethod
    def for_memory_dir(cls, memory_dir: Union[str, Path]) -> "CreditLedger":
        return cls(Path(memory_dir) / LEDGER_FILENAME)

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create a SQLite connection with WAL mode."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=5.0,
                isolation_level=None,  # autocommit; transaction() opens explicit ones
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def close(self):
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of writes as one atomic unit.

        Nested use joins the outer transaction.
        """
        conn = self._get_connection()
        if conn.in_transaction:
            yield conn
            return

        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def _ensure_schema(self):
        """Create tables and indexes if they don't exist."""
        conn = self._get_connection()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );

            CREATE TABLE IF NOT EXISTS credit_records (
                id TEXT PRIMARY KEY,
                score REAL NOT NULL DEFAULT 0.5,
                access_count INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                last_accessed TEXT NOT NULL,
                decay_rate REAL NOT NULL DEFAULT 0.01
            );

            CREATE INDEX IF NOT EXISTS idx_credit_score
                ON credit_records(score DESC);
            CREATE INDEX IF NOT EXISTS idx_credit_last_accessed
                ON credit_records(last_accessed);

            CREATE TABLE IF NOT EXISTS credit_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                memory_id TEXT NOT NULL,
                event_type TEXT NOT NULL,
                reward REAL NOT NULL,
                old_score REAL NOT NULL,
                new_score REAL NOT NULL,
                session_id TEXT,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_memory
                ON credit_events(memory_id);
            CREATE INDEX IF NOT EXISTS idx_events_session
                ON credit_events(session_id);

            CREATE TABLE IF NOT EXISTS turn_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                retrieved_memory_ids TEXT NOT NULL,
                outcome TEXT,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_turns_session
                ON turn_records(session_id);

            CREATE TABLE IF NOT EXISTS lifecycle_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                action TEXT NOT NULL,
                target_ids TEXT NOT NULL,
                details TEXT,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_lifecycle_action
                ON lifecycle_log(action);

            CREATE TABLE IF NOT EXISTS contradictions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                memory_a_id TEXT NOT NULL,
                memory_b_id TEXT NOT NULL,
                description TEXT,
                resolution TEXT,
                resolved_at TEXT,
                created_at TEXT NOT NULL
            );
        """)

        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (self.SCHEMA_VERSION,),
        )

    # =====================================================================
    # Credit records
    # =====================================================================

    def insert_record_if_absent(
        self, memory_id: str, score: float, decay_rate: float
    ) -> bool:
        """Create a record unless one exists. Returns True if a row was inserted."""
        now = utcnow_iso()
        cursor = self._get_connection().execute(
            """
            INSERT INTO credit_records (id, score, access_count, created_at,
                last_accessed, decay_rate)
            VALUES (?, ?, 0, ?, ?, ?)
            ON CONFLICT(id) DO NOTHING
            """,
            (memory_id, score, now, now, decay_rate),
        )
        return cursor.rowcount > 0

    def get_record(self, memory_id: str) -> Optional[CreditRecord]:
        row = self._get_connection().execute(
            "SELECT * FROM credit_records WHERE id = ?", (memory_id,)
        ).fetchone()
        return _record_from_row(row) if row else None

    def all_records(self) -> List[CreditRecord]:
        rows = self._get_connection().execute(
            "SELECT * FROM credit_records ORDER BY id"
        ).fetchall()
        return [_record_from_row(r) for r in rows]

    def set_score(self, memory_id: str, score: float) -> None:
        self._get_connection().execute(
            "UPDATE credit_records SET score = ? WHERE id = ?", (score, memory_id)
        )

    def record_access(self, memory_id: str, score: float) -> None:
        """Set a new score and count an access."""
        self._get_connection().execute(
            """
            UPDATE credit_records
            SET score = ?, access_count = access_count + 1, last_accessed = ?
            WHERE id = ?
            """,
            (score, utcnow_iso(), memory_id),
        )

    def delete_record(self, memory_id: str) -> bool:
        cursor = self._get_connection().execute(
            "DELETE FROM credit_records WHERE id = ?", (memory_id,)
        )
        return cursor.rowcount > 0

    def top_scored(self, limit: int) -> List[ScoredId]:
        rows = self._get_connection().execute(
            """
            SELECT id, score, access_count FROM credit_records
            ORDER BY score DESC, id ASC LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [ScoredId(r["id"], r["score"], r["access_count"]) for r in rows]

    def below_threshold(self, threshold: float) -> List[ScoredId]:
        rows = self._get_connection().execute(
            """
            SELECT id, score, access_count FROM credit_records
            WHERE score < ? ORDER BY score ASC, id ASC
            """,
            (threshold,),
        ).fetchall()
        return [ScoredId(r["id"], r["score"], r["access_count"]) for r in rows]

    # =====================================================================
    # Turns
    # =====================================================================

    def insert_turn(self, session_id: str, memory_ids: List[str]) -> int:
        cursor = self._get_connection().execute(
            """
            INSERT INTO turn_records (session_id, retrieved_memory_ids, outcome, created_at)
            VALUES (?, ?, NULL, ?)
            """,
            (session_id, json.dumps(memory_ids), utcnow_iso()),
        )
        return cursor.lastrowid

    def latest_unresolved_turn(self, session_id: str) -> Optional[TurnRecord]:
        row = self._get_connection().execute(
            """
            SELECT * FROM turn_records
            WHERE session_id = ? AND outcome IS NULL
            ORDER BY id DESC LIMIT 1
            """,
            (session_id,),
        ).fetchone()
        return _turn_from_row(row) if row else None

    def resolve_turn(self, turn_id: int, outcome: str) -> bool:
        """Write the outcome of a turn. Already-resolved turns are left alone."""
        cursor = self._get_connection().execute(
            "UPDATE turn_records SET outcome = ? WHERE id = ? AND outcome IS NULL",
            (outcome, turn_id),
        )
        return cursor.rowcount > 0

    def get_turns(
        self, session_id: Optional[str] = None, pending_only: bool = False
    ) -> List[TurnRecord]:
        clauses, params = [], []
        if session_id is not None:
            clauses.append("session_id = ?")
            params.append(session_id)
        if pending_only:
            clauses.append("outcome IS NULL")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._get_connection().execute(
            f"SELECT * FROM turn_records {where} ORDER BY id ASC", params
        ).fetchall()
        return [_turn_from_row(r) for r in rows]

    # =====================================================================
    # Credit events
    # =====================================================================

    def insert_event(
        self,
        memory_id: str,
        event_type: str,
        reward: float,
        old_score: float,
        new_score: float,
        session_id: Optional[str],
    ) -> int:
        cursor = self._get_connection().execute(
            """
            INSERT INTO credit_events (memory_id, event_type, reward, old_score,
                new_score, session_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (memory_id, event_type, reward, old_score, new_score, session_id, utcnow_iso()),
        )
        return cursor.lastrowid

    def get_events(
        self, memory_id: Optional[str] = None, limit: int = 50
    ) -> List[CreditEvent]:
        conn = self._get_connection()
        if memory_id is not None:
            rows = conn.execute(
                "SELECT * FROM credit_events WHERE memory_id = ? ORDER BY id DESC LIMIT ?",
                (memory_id, limit),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM credit_events ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [
            CreditEvent(
                id=r["id"],
                memory_id=r["memory_id"],
                event_type=r["event_type"],
                reward=r["reward"],
                old_score=r["old_score"],
                new_score=r["new_score"],
                session_id=r["session_id"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # =====================================================================
    # Lifecycle log
    # =====================================================================

    def log_lifecycle(
        self, action: str, target_ids: Iterable[str], details: Optional[str] = None
    ) -> int:
        cursor = self._get_connection().execute(
            """
            INSERT INTO lifecycle_log (action, target_ids, details, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (action, json.dumps(list(target_ids)), details, utcnow_iso()),
        )
        return cursor.lastrowid

    def get_lifecycle_log(
        self, action: Optional[str] = None, limit: Optional[int] = None
    ) -> List[LifecycleLogEntry]:
        sql = "SELECT * FROM lifecycle_log"
        params: List[Any] = []
        if action is not None:
            sql += " WHERE action = ?"
            params.append(action)
        sql += " ORDER BY id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self._get_connection().execute(sql, params).fetchall()
        return [
            LifecycleLogEntry(
                id=r["id"],
                action=r["action"],
                target_ids=json.loads(r["target_ids"]),
                details=r["details"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    def promoted_episode_ids(self) -> Set[str]:
        """Episode ids already named as the source of a promotion."""
        promoted = set()
        for entry in self.get_lifecycle_log(action="promote"):
            if entry.target_ids:
                promoted.add(entry.target_ids[0])
        return promoted

    # =====================================================================
    # Contradictions
    # =====================================================================

    def record_contradiction(
        self, memory_a_id: str, memory_b_id: str, description: Optional[str] = None
    ) -> int:
        cursor = self._get_connection().execute(
            """
            INSERT INTO contradictions (memory_a_id, memory_b_id, description, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (memory_a_id, memory_b_id, description, utcnow_iso()),
        )
        return cursor.lastrowid

    def get_contradictions(self, unresolved_only: bool = True) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM contradictions"
        if unresolved_only:
            sql += " WHERE resolved_at IS NULL"
        rows = self._get_connection().execute(sql + " ORDER BY id ASC").fetchall()
        return [dict(r) for r in rows]

    def resolve_contradiction(self, contradiction_id: int, resolution: str) -> bool:
        cursor = self._get_connection().execute(
            """
            UPDATE contradictions SET resolution = ?, resolved_at = ?
            WHERE id = ? AND resolved_at IS NULL
            """,
            (resolution, utcnow_iso(), contradiction_id),
        )
        return cursor.rowcount > 0

    # =====================================================================
    # Stats
    # =====================================================================

    def get_stats(self) -> Dict[str, Any]:
        """Row counts per table plus last decay time and file size."""
        conn = self._get_connection()
        stats: Dict[str, Any] = {}

        for table in self.TABLES:
            row = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}").fetchone()
            stats[table] = row["cnt"]

        row = conn.execute(
            "SELECT COUNT(*) as cnt FROM turn_records WHERE outcome IS NULL"
        ).fetchone()
        stats["pending_turns"] = row["cnt"]

        row = conn.execute(
            "SELECT AVG(score) as avg_score FROM credit_records"
        ).fetchone()
        stats["average_score"] = row["avg_score"]

        row = conn.execute(
            """
            SELECT created_at FROM lifecycle_log
            WHERE action = 'decay' ORDER BY id DESC LIMIT 1
            """
        ).fetchone()
        stats["last_decay"] = row["created_at"] if row else None

        try:
            stats["db_size_bytes"] = self.db_path.stat().st_size
        except OSError:
            stats["db_size_bytes"] = 0

        return stats


# =========================================================================
# Helpers
# =========================================================================


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _record_from_row(row: sqlite3.Row) -> CreditRecord:
    return CreditRecord(
        id=row["id"],
        score=row["score"],
        access_count=row["access_count"],
        created_at=row["created_at"],
        last_accessed=row["last_accessed"],
        decay_rate=row["decay_rate"],
    )


def _turn_from_row(row: sqlite3.Row) -> TurnRecord:
    return TurnRecord(
        id=row["id"],
        session_id=row["session_id"],
        retrieved_memory_ids=json.loads(row["retrieved_memory_ids"]),
        outcome=row["outcome"],
        created_at=row["created_at"],
    )
