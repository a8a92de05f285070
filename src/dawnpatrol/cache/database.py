"""DuckDB persistence for snapshots, frozen predictions and verifications."""

import json
import logging
import time
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import duckdb

from dawnpatrol.cache.models import AggregateSnapshot, FetchLog
from dawnpatrol.evaluation.verification import VerificationRecord
from dawnpatrol.models.synthesizer import Prediction
from dawnpatrol.utils.io import get_project_root

logger = logging.getLogger(__name__)

# Default database path - use project root to ensure consistent path
DEFAULT_DB_PATH = get_project_root() / "data" / "cache" / "dawnpatrol.duckdb"

SNAPSHOT_SLOTS = ("current", "previous")

# SQL schema - DuckDB uses sequences for auto-increment
SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS seq_fetch_log_id START 1;

-- Current and previous aggregate snapshot, replaced whole
CREATE TABLE IF NOT EXISTS snapshots (
    slot VARCHAR NOT NULL,
    fetched_at TIMESTAMP NOT NULL,
    reliability VARCHAR NOT NULL,
    payload VARCHAR NOT NULL
);

-- One frozen prediction per local date, never updated
CREATE TABLE IF NOT EXISTS daily_predictions (
    target_date DATE PRIMARY KEY,
    frozen_at TIMESTAMP NOT NULL,
    probability INTEGER NOT NULL,
    confidence INTEGER NOT NULL,
    recommendation VARCHAR NOT NULL,
    payload VARCHAR NOT NULL
);

-- One verification per local date, never updated
CREATE TABLE IF NOT EXISTS verifications (
    target_date DATE PRIMARY KEY,
    verified_at TIMESTAMP NOT NULL,
    outcome VARCHAR NOT NULL,
    payload VARCHAR NOT NULL
);

-- Fetch log for debugging/monitoring
CREATE TABLE IF NOT EXISTS fetch_log (
    id INTEGER DEFAULT nextval('seq_fetch_log_id') PRIMARY KEY,
    source VARCHAR NOT NULL,
    timestamp TIMESTAMP NOT NULL,
    status VARCHAR NOT NULL,
    records_added INTEGER,
    duration_ms INTEGER,
    error_message VARCHAR
);

CREATE INDEX IF NOT EXISTS idx_fetch_log_time ON fetch_log(timestamp);
"""


def _naive_utc(value: Optional[datetime] = None) -> datetime:
    """UTC wall time without tzinfo, as stored in TIMESTAMP columns."""
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _date_range(start: Optional[date], end: Optional[date]) -> tuple[str, list]:
    """WHERE clause and parameters for an optional inclusive date range."""
    clauses, params = [], []
    if start is not None:
        clauses.append("target_date >= ?")
        params.append(start)
    if end is not None:
        clauses.append("target_date <= ?")
        params.append(end)
    where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
    return where, params


class PredictionStore:
    """DuckDB store for the prediction lifecycle.

    Holds the current/previous snapshot pair, the frozen prediction of each
    day, verification records and a fetch log. Daily predictions and
    verifications are insert-only: a second write for the same date leaves
    the first in place and returns it.

    Example:
        >>> store = PredictionStore()
        >>> store.store_frozen_prediction(prediction)
        >>> store.get_frozen_prediction(prediction.target_date) == prediction
        True
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection.

        Args:
            db_path: Path to DuckDB file. Creates if doesn't exist.
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._init_schema()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get database connection (lazy initialization with retry)."""
        if self._conn is None:
            self._conn = self._connect_with_retry()
        return self._conn

    def _connect_with_retry(self, max_retries: int = 3) -> duckdb.DuckDBPyConnection:
        """Connect to database with retry logic for lock handling."""
        last_error = None
        for attempt in range(max_retries):
            try:
                return duckdb.connect(str(self.db_path))
            except duckdb.IOException as e:
                last_error = e
                if "lock" in str(e).lower() and attempt < max_retries - 1:
                    wait_time = 0.5 * (2 ** attempt)  # Exponential backoff
                    logger.warning(f"Database locked, retrying in {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    raise
        raise last_error

    def _init_schema(self) -> None:
        """Initialize database schema."""
        for statement in SCHEMA_SQL.split(";"):
            statement = statement.strip()
            if statement:
                self.conn.execute(statement)
        logger.info(f"Prediction store initialized at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -------------------------------------------------------------------------
    # Snapshot Operations
    # -------------------------------------------------------------------------

    def save_snapshot(self, snapshot: AggregateSnapshot) -> None:
        """Store snapshot as current; the old current becomes previous.

        The rotation runs in one transaction so readers never see a partial
        pair.
        """
        payload = json.dumps(snapshot.to_dict())
        self.conn.execute("BEGIN TRANSACTION")
        try:
            self.conn.execute("DELETE FROM snapshots WHERE slot = 'previous'")
            self.conn.execute("UPDATE snapshots SET slot = 'previous' WHERE slot = 'current'")
            self.conn.execute(
                """
                INSERT INTO snapshots (slot, fetched_at, reliability, payload)
                VALUES ('current', ?, ?, ?)
                """,
                [_naive_utc(snapshot.fetched_at), snapshot.reliability.value, payload],
            )
            self.conn.execute("COMMIT")
        except duckdb.Error:
            self.conn.execute("ROLLBACK")
            raise
        logger.debug(f"Saved snapshot: {snapshot}")

    def get_snapshot(self, slot: str = "current") -> Optional[AggregateSnapshot]:
        """Load the current or previous snapshot."""
        if slot not in SNAPSHOT_SLOTS:
            raise ValueError(f"slot must be one of {SNAPSHOT_SLOTS}, got {slot!r}")
        result = self.conn.execute(
            "SELECT payload FROM snapshots WHERE slot = ? LIMIT 1",
            [slot],
        ).fetchone()
        if result is None:
            return None
        return AggregateSnapshot.from_dict(json.loads(result[0]))

    def get_snapshots(self) -> tuple[Optional[AggregateSnapshot], Optional[AggregateSnapshot]]:
        """Get (current, previous) snapshots."""
        return self.get_snapshot("current"), self.get_snapshot("previous")

    # -------------------------------------------------------------------------
    # Frozen Prediction Operations
    # -------------------------------------------------------------------------

    def get_frozen_prediction(self, target_date: date) -> Optional[Prediction]:
        """Get the frozen prediction for a date, if one was stored."""
        result = self.conn.execute(
            "SELECT payload FROM daily_predictions WHERE target_date = ?",
            [target_date],
        ).fetchone()
        if result is None:
            return None
        return Prediction.from_dict(json.loads(result[0]))

    def store_frozen_prediction(
        self,
        prediction: Prediction,
        frozen_at: Optional[datetime] = None,
    ) -> Prediction:
        """Insert the frozen prediction for its target date.

        Returns:
            The stored prediction. If a record already exists for the date it
            is returned unchanged and the argument is discarded.
        """
        self.conn.execute(
            """
            INSERT INTO daily_predictions
            (target_date, frozen_at, probability, confidence, recommendation, payload)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (target_date) DO NOTHING
            """,
            [
                prediction.target_date,
                _naive_utc(frozen_at),
                prediction.probability,
                prediction.confidence,
                prediction.recommendation.value,
                json.dumps(prediction.to_dict()),
            ],
        )
        stored = self.get_frozen_prediction(prediction.target_date)
        if stored != prediction:
            logger.info(f"Prediction for {prediction.target_date} already frozen; keeping stored value")
        return stored

    def list_frozen_predictions(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Prediction]:
        """Frozen predictions between start and end inclusive, oldest first."""
        where, params = _date_range(start, end)
        rows = self.conn.execute(
            f"SELECT payload FROM daily_predictions {where} ORDER BY target_date",
            params,
        ).fetchall()
        return [Prediction.from_dict(json.loads(row[0])) for row in rows]

    # -------------------------------------------------------------------------
    # Verification Operations
    # -------------------------------------------------------------------------

    def get_verification(self, target_date: date) -> Optional[VerificationRecord]:
        """Get the verification record for a date, if any."""
        result = self.conn.execute(
            "SELECT payload FROM verifications WHERE target_date = ?",
            [target_date],
        ).fetchone()
        if result is None:
            return None
        return VerificationRecord.from_dict(json.loads(result[0]))

    def store_verification(self, record: VerificationRecord) -> VerificationRecord:
        """Insert a verification record; an existing one for the date wins."""
        self.conn.execute(
            """
            INSERT INTO verifications (target_date, verified_at, outcome, payload)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (target_date) DO NOTHING
            """,
            [
                record.target_date,
                _naive_utc(record.verified_at),
                record.outcome,
                json.dumps(record.to_dict()),
            ],
        )
        return self.get_verification(record.target_date)

    def list_verifications(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[VerificationRecord]:
        """Verification records between start and end inclusive, oldest first."""
        where, params = _date_range(start, end)
        rows = self.conn.execute(
            f"SELECT payload FROM verifications {where} ORDER BY target_date",
            params,
        ).fetchall()
        return [VerificationRecord.from_dict(json.loads(row[0])) for row in rows]

    # -------------------------------------------------------------------------
    # Logging Operations
    # -------------------------------------------------------------------------

    def log_fetch(
        self,
        source: str,
        status: str,
        records_added: int,
        duration_ms: int,
        error_message: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Log a data fetch operation."""
        self.conn.execute(
            """
            INSERT INTO fetch_log (source, timestamp, status, records_added, duration_ms, error_message)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [source, _naive_utc(timestamp), status, records_added, duration_ms, error_message],
        )

    def get_recent_fetches(self, limit: int = 10) -> list[FetchLog]:
        """Most recent fetch log entries, newest first."""
        rows = self.conn.execute(
            """
            SELECT source, timestamp, status, records_added, duration_ms, error_message
            FROM fetch_log
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
            """,
            [limit],
        ).fetchall()
        return [
            FetchLog(
                source=row[0],
                timestamp=row[1].replace(tzinfo=timezone.utc),
                status=row[2],
                records_added=row[3] or 0,
                duration_ms=row[4] or 0,
                error_message=row[5],
            )
            for row in rows
        ]

    def cleanup(self, retention_days: int = 7, now: Optional[datetime] = None) -> int:
        """Remove fetch log entries older than retention_days.

        Snapshots are only rotated by save_snapshot, never removed. Frozen
        predictions and verifications are the accuracy history and are kept.

        Returns:
            Number of rows deleted
        """
        cutoff = _naive_utc(now) - timedelta(days=retention_days)
        result = self.conn.execute(
            "DELETE FROM fetch_log WHERE timestamp < ?",
            [cutoff],
        )
        deleted = result.fetchone()[0] if result else 0
        logger.info(f"Cleaned up {deleted} old records")
        return deleted

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Get store statistics."""
        prediction_count = self.conn.execute(
            "SELECT COUNT(*) FROM daily_predictions"
        ).fetchone()[0]

        verification_count = self.conn.execute(
            "SELECT COUNT(*) FROM verifications"
        ).fetchone()[0]

        fetch_count = self.conn.execute(
            "SELECT COUNT(*) FROM fetch_log"
        ).fetchone()[0]

        latest_frozen = self.conn.execute(
            "SELECT MAX(target_date) FROM daily_predictions"
        ).fetchone()[0]

        snapshot_row = self.conn.execute(
            "SELECT fetched_at, reliability FROM snapshots WHERE slot = 'current' LIMIT 1"
        ).fetchone()

        return {
            "prediction_count": prediction_count,
            "verification_count": verification_count,
            "fetch_count": fetch_count,
            "latest_frozen_date": latest_frozen,
            "snapshot_fetched_at": snapshot_row[0] if snapshot_row else None,
            "snapshot_reliability": snapshot_row[1] if snapshot_row else None,
            "db_path": str(self.db_path),
        }
