"""
Variant Storage Module
Handles storage and retrieval of variants, posteriors and feedback history
"""

import logging
import secrets
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import numpy as np

from ..core.exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_ALPHA = 1.0
DEFAULT_BETA = 1.0


@dataclass(frozen=True)
class Variant:
    """A competing template; content is opaque to the engine"""
    id: str
    template: str
    parent_id: Optional[str] = None
    generation: int = 0
    created_at: float = 0.0


@dataclass
class PerformancePosterior:
    """Beta posterior and running averages for one variant"""
    variant_id: str
    alpha: float = DEFAULT_ALPHA  # Successes (pseudo-counts)
    beta: float = DEFAULT_BETA    # Failures (pseudo-counts)
    total_trials: int = 0
    avg_reward: float = 0.0
    avg_latency_ms: float = 0.0
    avg_token_cost: float = 0.0

    @classmethod
    def default(cls, variant_id: str) -> 'PerformancePosterior':
        """Uniform Beta(1, 1) prior with no trials"""
        return cls(variant_id=variant_id)

    @property
    def win_rate(self) -> float:
        """Posterior mean success rate"""
        return self.alpha / (self.alpha + self.beta)

    def to_dict(self) -> Dict:
        return {
            'variant_id': self.variant_id,
            'alpha': self.alpha,
            'beta': self.beta,
            'total_trials': self.total_trials,
            'avg_reward': self.avg_reward,
            'avg_latency_ms': self.avg_latency_ms,
            'avg_token_cost': self.avg_token_cost,
            'win_rate': self.win_rate
        }


@dataclass(frozen=True)
class FeedbackEvent:
    """Observed outcome of serving a variant for one task"""
    task_id: str
    variant_id: str
    reward: float
    latency_ms: float
    token_cost: float
    success: bool
    timestamp: float


@dataclass(frozen=True)
class PreferenceComparison:
    """Pairwise judgement that one variant beat another"""
    winner_id: str
    loser_id: str
    context: str
    human_feedback: bool
    timestamp: float


@dataclass(frozen=True)
class ContextualObservation:
    """Feature vector observed alongside a reward"""
    variant_id: str
    context_hash: str
    features: List[float] = field(default_factory=list)
    reward: float = 0.0
    timestamp: float = 0.0


@dataclass(frozen=True)
class ExperimentAssignment:
    """Which variant served a given task"""
    task_id: str
    variant_id: str
    context: str
    timestamp: float


class VariantStorage:
    """
    SQLite storage for the learning engine

    Owns a single connection shared across threads. Every public method is
    one critical section, so multi-statement updates are atomic with respect
    to other callers. Per-variant serialization of read-modify-write cycles
    is the job of PosteriorStore.
    """

    def __init__(self, db_path: str = ".ab_learning/ab_learning.db"):
        """
        Initialize variant storage

        Args:
            db_path: Path to SQLite database (":memory:" for a private in-memory store)
        """
        self.db_path = db_path
        self._lock = threading.RLock()
        self._closed = False

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row

        self.create_tables()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run statements in one transaction, wrapping sqlite errors"""
        with self._lock:
            if self._closed:
                raise StorageError(f"Storage {self.db_path} is closed")
            try:
                with self._conn:
                    yield self._conn.cursor()
            except sqlite3.Error as e:
                logger.error(f"Storage error on {self.db_path}: {e}")
                raise StorageError(str(e)) from e

    def create_tables(self):
        """Create database tables"""
        with self._transaction() as cursor:
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS prompt_variants (
                    id TEXT PRIMARY KEY,
                    template TEXT NOT NULL,
                    parent_id TEXT,
                    generation INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS variant_performance (
                    variant_id TEXT PRIMARY KEY,
                    alpha REAL NOT NULL DEFAULT 1.0,
                    beta REAL NOT NULL DEFAULT 1.0,
                    total_trials INTEGER NOT NULL DEFAULT 0,
                    avg_reward REAL NOT NULL DEFAULT 0.0,
                    avg_latency_ms REAL NOT NULL DEFAULT 0.0,
                    avg_token_cost REAL NOT NULL DEFAULT 0.0
                )
            ''')

            # History tables reference variant ids without foreign keys:
            # they outlive pruned variants.
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS experiment_assignments (
                    task_id TEXT PRIMARY KEY,
                    variant_id TEXT NOT NULL,
                    context TEXT,
                    timestamp REAL NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS feedback_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id TEXT NOT NULL,
                    variant_id TEXT NOT NULL,
                    reward REAL NOT NULL,
                    latency_ms REAL NOT NULL,
                    token_cost REAL NOT NULL,
                    success INTEGER NOT NULL,
                    timestamp REAL NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS preference_comparisons (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    winner_id TEXT NOT NULL,
                    loser_id TEXT NOT NULL,
                    context TEXT,
                    human_feedback INTEGER NOT NULL DEFAULT 0,
                    timestamp REAL NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS contextual_features (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    variant_id TEXT NOT NULL,
                    context_hash TEXT NOT NULL,
                    features BLOB NOT NULL,
                    reward REAL NOT NULL,
                    timestamp REAL NOT NULL
                )
            ''')

            cursor.execute('CREATE INDEX IF NOT EXISTS idx_feedback_variant ON feedback_records(variant_id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_feedback_timestamp ON feedback_records(timestamp)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_contextual_variant ON contextual_features(variant_id, context_hash)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_performance_trials ON variant_performance(total_trials)')

        logger.debug(f"Tables ready in {self.db_path}")

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    def create_variant(
        self,
        template: str,
        parent_id: Optional[str] = None,
        generation: int = 0,
        created_at: Optional[float] = None
    ) -> Variant:
        """
        Insert a variant together with its default posterior

        Args:
            template: Variant content
            parent_id: Lineage back-reference (not validated)
            generation: 0 for root variants
            created_at: Creation timestamp (defaults to now)

        Returns:
            The stored Variant
        """
        variant = Variant(
            id=secrets.token_hex(16),
            template=template,
            parent_id=parent_id,
            generation=generation,
            created_at=created_at if created_at is not None else time.time()
        )

        with self._transaction() as cursor:
            cursor.execute('''
                INSERT INTO prompt_variants (id, template, parent_id, generation, created_at)
                VALUES (?, ?, ?, ?, ?)
            ''', (variant.id, variant.template, variant.parent_id, variant.generation, variant.created_at))
            cursor.execute('''
                INSERT OR REPLACE INTO variant_performance (variant_id, alpha, beta)
                VALUES (?, ?, ?)
            ''', (variant.id, DEFAULT_ALPHA, DEFAULT_BETA))

        return variant

    def get_variant(self, variant_id: str) -> Optional[Variant]:
        """Get a variant by id"""
        with self._transaction() as cursor:
            cursor.execute('SELECT * FROM prompt_variants WHERE id = ?', (variant_id,))
            row = cursor.fetchone()
        return self._row_to_variant(row) if row else None

    def get_all_variants(self) -> List[Variant]:
        """All variants, newest first"""
        with self._transaction() as cursor:
            cursor.execute('SELECT * FROM prompt_variants ORDER BY created_at DESC, rowid DESC')
            rows = cursor.fetchall()
        return [self._row_to_variant(row) for row in rows]

    def get_top_variants(self, limit: int, min_trials: int) -> List[Variant]:
        """
        Best variants by average reward

        Args:
            limit: Maximum number of variants
            min_trials: Variants with fewer trials are excluded

        Returns:
            Variants ordered by descending average reward
        """
        with self._transaction() as cursor:
            cursor.execute('''
                SELECT pv.*
                FROM prompt_variants pv
                JOIN variant_performance vp ON pv.id = vp.variant_id
                WHERE vp.total_trials >= ?
                ORDER BY vp.avg_reward DESC, pv.created_at ASC
                LIMIT ?
            ''', (min_trials, limit))
            rows = cursor.fetchall()
        return [self._row_to_variant(row) for row in rows]

    def delete_variant(self, variant_id: str) -> bool:
        """
        Delete a variant and its posterior; history rows are kept

        Returns:
            True if a variant row was removed
        """
        with self._transaction() as cursor:
            cursor.execute('DELETE FROM variant_performance WHERE variant_id = ?', (variant_id,))
            cursor.execute('DELETE FROM prompt_variants WHERE id = ?', (variant_id,))
            return cursor.rowcount > 0

    def find_prune_candidates(self, min_trials: int, max_win_rate: float) -> List[str]:
        """Ids whose posterior has enough trials and a win rate below the cutoff"""
        with self._transaction() as cursor:
            cursor.execute('''
                SELECT variant_id FROM variant_performance
                WHERE total_trials >= ? AND (alpha / (alpha + beta)) < ?
            ''', (min_trials, max_win_rate))
            return [row['variant_id'] for row in cursor.fetchall()]

    # ------------------------------------------------------------------
    # Posteriors
    # ------------------------------------------------------------------

    def get_posterior(self, variant_id: str) -> Optional[PerformancePosterior]:
        """Stored posterior, or None if the id has none"""
        with self._transaction() as cursor:
            cursor.execute('SELECT * FROM variant_performance WHERE variant_id = ?', (variant_id,))
            row = cursor.fetchone()
        if not row:
            return None
        return PerformancePosterior(
            variant_id=row['variant_id'],
            alpha=row['alpha'],
            beta=row['beta'],
            total_trials=row['total_trials'],
            avg_reward=row['avg_reward'],
            avg_latency_ms=row['avg_latency_ms'],
            avg_token_cost=row['avg_token_cost']
        )

    def save_posterior(self, posterior: PerformancePosterior):
        """Insert or replace a posterior row"""
        with self._transaction() as cursor:
            self._write_posterior(cursor, posterior)

    def save_feedback(self, posterior: PerformancePosterior, event: FeedbackEvent):
        """Write the updated posterior and the raw feedback in one transaction"""
        with self._transaction() as cursor:
            self._write_posterior(cursor, posterior)
            cursor.execute('''
                INSERT INTO feedback_records
                (task_id, variant_id, reward, latency_ms, token_cost, success, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (event.task_id, event.variant_id, event.reward, event.latency_ms,
                  event.token_cost, 1 if event.success else 0, event.timestamp))

    @staticmethod
    def _write_posterior(cursor: sqlite3.Cursor, posterior: PerformancePosterior):
        cursor.execute('''
            INSERT OR REPLACE INTO variant_performance
            (variant_id, alpha, beta, total_trials, avg_reward, avg_latency_ms, avg_token_cost)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (posterior.variant_id, posterior.alpha, posterior.beta, posterior.total_trials,
              posterior.avg_reward, posterior.avg_latency_ms, posterior.avg_token_cost))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_feedback(self, variant_id: Optional[str] = None, limit: int = 1000) -> List[FeedbackEvent]:
        """Feedback history, newest first"""
        query = 'SELECT * FROM feedback_records'
        params: list = []
        if variant_id:
            query += ' WHERE variant_id = ?'
            params.append(variant_id)
        query += ' ORDER BY timestamp DESC, id DESC LIMIT ?'
        params.append(limit)

        with self._transaction() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()

        return [
            FeedbackEvent(
                task_id=row['task_id'],
                variant_id=row['variant_id'],
                reward=row['reward'],
                latency_ms=row['latency_ms'],
                token_cost=row['token_cost'],
                success=bool(row['success']),
                timestamp=row['timestamp']
            )
            for row in rows
        ]

    def store_preference(self, comparison: PreferenceComparison):
        """Append a preference comparison"""
        with self._transaction() as cursor:
            cursor.execute('''
                INSERT INTO preference_comparisons (winner_id, loser_id, context, human_feedback, timestamp)
                VALUES (?, ?, ?, ?, ?)
            ''', (comparison.winner_id, comparison.loser_id, comparison.context,
                  1 if comparison.human_feedback else 0, comparison.timestamp))

    def get_preferences(self, variant_id: Optional[str] = None, limit: int = 1000) -> List[PreferenceComparison]:
        """Preference history, newest first"""
        query = 'SELECT * FROM preference_comparisons'
        params: list = []
        if variant_id:
            query += ' WHERE winner_id = ? OR loser_id = ?'
            params.extend([variant_id, variant_id])
        query += ' ORDER BY timestamp DESC, id DESC LIMIT ?'
        params.append(limit)

        with self._transaction() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()

        return [
            PreferenceComparison(
                winner_id=row['winner_id'],
                loser_id=row['loser_id'],
                context=row['context'] or "",
                human_feedback=bool(row['human_feedback']),
                timestamp=row['timestamp']
            )
            for row in rows
        ]

    def store_assignment(self, assignment: ExperimentAssignment):
        """Record (or overwrite) which variant served a task"""
        with self._transaction() as cursor:
            cursor.execute('''
                INSERT OR REPLACE INTO experiment_assignments (task_id, variant_id, context, timestamp)
                VALUES (?, ?, ?, ?)
            ''', (assignment.task_id, assignment.variant_id, assignment.context, assignment.timestamp))

    def get_assignment(self, task_id: str) -> Optional[ExperimentAssignment]:
        with self._transaction() as cursor:
            cursor.execute('SELECT * FROM experiment_assignments WHERE task_id = ?', (task_id,))
            row = cursor.fetchone()
        if not row:
            return None
        return ExperimentAssignment(
            task_id=row['task_id'],
            variant_id=row['variant_id'],
            context=row['context'] or "",
            timestamp=row['timestamp']
        )

    def store_observation(self, observation: ContextualObservation):
        """Append a contextual observation; features are stored as float64 bytes"""
        blob = np.asarray(observation.features, dtype=np.float64).tobytes()
        with self._transaction() as cursor:
            cursor.execute('''
                INSERT INTO contextual_features (variant_id, context_hash, features, reward, timestamp)
                VALUES (?, ?, ?, ?, ?)
            ''', (observation.variant_id, observation.context_hash, blob,
                  observation.reward, observation.timestamp))

    def get_observations(self, variant_id: str, context_hash: Optional[str] = None) -> List[ContextualObservation]:
        """Contextual observations for a variant, oldest first"""
        query = 'SELECT * FROM contextual_features WHERE variant_id = ?'
        params: list = [variant_id]
        if context_hash:
            query += ' AND context_hash = ?'
            params.append(context_hash)
        query += ' ORDER BY timestamp ASC, id ASC'

        with self._transaction() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()

        return [
            ContextualObservation(
                variant_id=row['variant_id'],
                context_hash=row['context_hash'],
                features=np.frombuffer(row['features'], dtype=np.float64).tolist(),
                reward=row['reward'],
                timestamp=row['timestamp']
            )
            for row in rows
        ]

    def get_statistics(self) -> Dict:
        """Aggregate counts across the store"""
        with self._transaction() as cursor:
            cursor.execute('SELECT COUNT(*) FROM prompt_variants')
            total_variants = cursor.fetchone()[0]

            cursor.execute('SELECT COUNT(*), COALESCE(SUM(success), 0) FROM feedback_records')
            total_feedback, successes = cursor.fetchone()

            cursor.execute('SELECT COUNT(*) FROM preference_comparisons')
            total_preferences = cursor.fetchone()[0]

            cursor.execute('SELECT COALESCE(MAX(generation), 0) FROM prompt_variants')
            max_generation = cursor.fetchone()[0]

        return {
            'total_variants': total_variants,
            'total_feedback': total_feedback,
            'success_rate': successes / total_feedback if total_feedback > 0 else 0.0,
            'total_preferences': total_preferences,
            'max_generation': max_generation
        }

    def close(self):
        """Close the underlying connection; further calls raise StorageError"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._conn.close()
        logger.info(f"Closed storage {self.db_path}")

    @staticmethod
    def _row_to_variant(row: sqlite3.Row) -> Variant:
        return Variant(
            id=row['id'],
            template=row['template'],
            parent_id=row['parent_id'],
            generation=row['generation'],
            created_at=row['created_at']
        )
