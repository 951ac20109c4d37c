"""
Decision Recorder
Keeps a queryable trail of engine decisions: selections, evaluations,
evolution runs and maintenance cycles
"""

import json
import logging
import os
import sqlite3
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import StorageError

logger = logging.getLogger(__name__)

DECISION_TYPES = (
    'selection',
    'feedback',
    'preference',
    'ab_test',
    'evolution',
    'maintenance',
    'config_change'
)


@dataclass
class DecisionRecord:
    """Record of a decision made by the engine"""
    timestamp: float
    decision_type: str  # One of DECISION_TYPES
    context: Dict[str, Any]  # Inputs the decision was made from
    parameters: Dict[str, Any]  # Settings in effect
    result: Optional[Dict[str, Any]] = None
    success: Optional[bool] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'timestamp': self.timestamp,
            'decision_type': self.decision_type,
            'context': self.context,
            'parameters': self.parameters,
            'result': self.result,
            'success': self.success,
            'metadata': self.metadata
        }


class DecisionRecorder:
    """
    Records engine decisions for later analysis

    Writes go through one connection guarded by a lock, so the recorder can
    be shared by the caller thread, the maintenance thread and the engine's
    worker pool.
    """

    def __init__(self, db_path: str = ".ab_learning/decisions.db"):
        """
        Initialize decision recorder

        Args:
            db_path: Path to SQLite database (":memory:" for a private one)
        """
        self.db_path = db_path
        if db_path != ":memory:":
            directory = os.path.dirname(db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_database()

    def _init_database(self):
        with self._lock, self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS decisions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    decision_type TEXT NOT NULL,
                    context TEXT NOT NULL,
                    parameters TEXT NOT NULL,
                    result TEXT,
                    success INTEGER,
                    metadata TEXT
                )
            """)
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_decision_timestamp ON decisions(timestamp)")
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_decision_type ON decisions(decision_type)")

    def record(
        self,
        decision_type: str,
        context: Dict[str, Any],
        parameters: Dict[str, Any],
        result: Optional[Dict[str, Any]] = None,
        success: Optional[bool] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> DecisionRecord:
        """
        Record a decision

        Args:
            decision_type: Kind of decision (see DECISION_TYPES)
            context: Inputs the decision was made from
            parameters: Settings in effect
            result: Outcome of the decision
            success: Whether the decision succeeded
            metadata: Additional metadata

        Returns:
            The stored record
        """
        record = DecisionRecord(
            timestamp=time.time(),
            decision_type=decision_type,
            context=context,
            parameters=parameters,
            result=result,
            success=success,
            metadata=metadata or {}
        )

        try:
            with self._lock, self._conn:
                self._conn.execute("""
                    INSERT INTO decisions (
                        timestamp, decision_type, context, parameters,
                        result, success, metadata
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.timestamp,
                    record.decision_type,
                    json.dumps(record.context, default=str),
                    json.dumps(record.parameters, default=str),
                    json.dumps(record.result, default=str) if record.result is not None else None,
                    None if record.success is None else int(record.success),
                    json.dumps(record.metadata, default=str)
                ))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to record {decision_type} decision: {e}") from e

        return record

    def query(
        self,
        decision_type: Optional[str] = None,
        success: Optional[bool] = None,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
        limit: int = 1000
    ) -> List[DecisionRecord]:
        """
        Query decision records, newest first

        Args:
            decision_type: Filter by decision type
            success: Filter by success status
            start_time: Filter by start timestamp
            end_time: Filter by end timestamp
            limit: Maximum number of records to return
        """
        query = "SELECT * FROM decisions WHERE 1=1"
        params: list = []

        if decision_type:
            query += " AND decision_type = ?"
            params.append(decision_type)
        if success is not None:
            query += " AND success = ?"
            params.append(1 if success else 0)
        if start_time is not None:
            query += " AND timestamp >= ?"
            params.append(start_time)
        if end_time is not None:
            query += " AND timestamp <= ?"
            params.append(end_time)

        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)

        try:
            with self._lock:
                rows = self._conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to query decisions: {e}") from e

        return [
            DecisionRecord(
                timestamp=row['timestamp'],
                decision_type=row['decision_type'],
                context=json.loads(row['context']),
                parameters=json.loads(row['parameters']),
                result=json.loads(row['result']) if row['result'] else None,
                success=bool(row['success']) if row['success'] is not None else None,
                metadata=json.loads(row['metadata']) if row['metadata'] else {}
            )
            for row in rows
        ]

    def get_statistics(self) -> Dict[str, Any]:
        """Counts by type and overall success rate"""
        try:
            with self._lock:
                total = self._conn.execute("SELECT COUNT(*) FROM decisions").fetchone()[0]
                by_type = {
                    row[0]: row[1]
                    for row in self._conn.execute(
                        "SELECT decision_type, COUNT(*) FROM decisions GROUP BY decision_type"
                    ).fetchall()
                }
                successful = self._conn.execute("SELECT COUNT(*) FROM decisions WHERE success = 1").fetchone()[0]
                failed = self._conn.execute("SELECT COUNT(*) FROM decisions WHERE success = 0").fetchone()[0]
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read decision statistics: {e}") from e

        return {
            'total_records': total,
            'by_type': by_type,
            'successful': successful,
            'failed': failed,
            'success_rate': successful / total if total > 0 else 0.0
        }

    def export_to_json(self, output_path: str, **query_kwargs):
        """Export records to JSON file"""
        records = self.query(**query_kwargs)
        with open(output_path, 'w') as f:
            json.dump([record.to_dict() for record in records], f, indent=2)
        logger.info(f"Exported {len(records)} decision records to {output_path}")

    def close(self):
        with self._lock:
            self._conn.close()
