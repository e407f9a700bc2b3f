"""
Persistence collaborators for the orchestrator.

PostgresStore delegates to ``db`` and commits every write on its own, so a
prediction is stored whole or not at all. MemoryStore keeps the same
contract in process memory and backs ``--dry-run`` runs and tests.

Any persistence failure other than a duplicate key surfaces as
BatchSetupError.
"""

import copy
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import psycopg

from autoevolve import db
from autoevolve.errors import BatchSetupError
from autoevolve.models import EvolutionState, PredictionRecord

logger = logging.getLogger(__name__)


class PostgresStore:
    def __init__(self, conn: psycopg.Connection):
        self.conn = conn

    @contextmanager
    def _write(self, what: str):
        try:
            yield
            self.conn.commit()
        except psycopg.Error as e:
            self.conn.rollback()
            raise BatchSetupError(f"{what} failed: {e}") from e

    @contextmanager
    def _read(self, what: str):
        try:
            yield
        except psycopg.Error as e:
            self.conn.rollback()
            raise BatchSetupError(f"{what} failed: {e}") from e

    def recent_game_ids(self, window_days: int, limit: int | None = None) -> set[str]:
        with self._read("loading recent game ids"):
            return db.get_recent_game_ids(self.conn, window_days, limit)

    def insert_prediction(self, record: PredictionRecord) -> bool:
        with self._write(f"inserting prediction {record.game_id}"):
            return db.insert_prediction(self.conn, record)

    def latest_state(self) -> EvolutionState | None:
        with self._read("loading evolution state"):
            return db.get_latest_evolution_state(self.conn)

    def append_state(self, state: EvolutionState) -> EvolutionState:
        with self._write("appending evolution state"):
            return db.append_evolution_state(self.conn, state)

    def log_event(self, event_type: str, payload: dict) -> None:
        with self._write(f"logging {event_type} event"):
            db.log_evolution_event(self.conn, event_type, payload)

    def prediction_counts(self) -> dict:
        with self._read("counting predictions"):
            return db.get_prediction_counts(self.conn)

    def prediction_rows(self, since_days: int | None = None) -> list[PredictionRecord]:
        with self._read("loading predictions"):
            return db.get_prediction_rows(self.conn, since_days)


@contextmanager
def open_store(database_url: str | None = None):
    """Yield a PostgresStore on a fresh connection. Raises BatchSetupError if unreachable."""
    try:
        conn = psycopg.connect(database_url or db.get_connection_string())
    except psycopg.Error as e:
        raise BatchSetupError(f"database unreachable: {e}") from e
    try:
        yield PostgresStore(conn)
    finally:
        conn.close()


class MemoryStore:
    """In-process store with insert-or-ignore semantics on game_id."""

    def __init__(self, now=None):
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.predictions: dict[str, tuple[datetime, PredictionRecord]] = {}
        self.states: list[EvolutionState] = []
        self.events: list[tuple[str, dict]] = []

    def recent_game_ids(self, window_days: int, limit: int | None = None) -> set[str]:
        cutoff = self._now() - timedelta(days=window_days)
        recent = sorted(
            ((at, gid) for gid, (at, _) in self.predictions.items() if at >= cutoff),
            reverse=True,
        )
        if limit:
            recent = recent[:limit]
        return {gid for _, gid in recent}

    def insert_prediction(self, record: PredictionRecord) -> bool:
        if record.game_id in self.predictions:
            return False
        self.predictions[record.game_id] = (self._now(), record)
        return True

    def latest_state(self) -> EvolutionState | None:
        return copy.deepcopy(self.states[-1]) if self.states else None

    def append_state(self, state: EvolutionState) -> EvolutionState:
        stored = copy.deepcopy(state)
        stored.state_id = len(self.states) + 1
        if stored.last_updated_at is None:
            stored.last_updated_at = self._now()
        self.states.append(stored)
        return copy.deepcopy(stored)

    def log_event(self, event_type: str, payload: dict) -> None:
        logger.debug("event %s: %s", event_type, payload)
        self.events.append((event_type, payload))

    def prediction_counts(self) -> dict:
        counts: dict[str, dict[str, int]] = {}
        for _, r in self.predictions.values():
            c = counts.setdefault(
                r.quality_tier,
                {"total": 0, "divergent": 0, "trajectory_correct": 0, "evaluation_correct": 0},
            )
            c["total"] += 1
            c["divergent"] += int(r.trajectory_prediction != r.evaluation_prediction)
            c["trajectory_correct"] += int(r.trajectory_correct)
            c["evaluation_correct"] += int(r.evaluation_correct)
        return counts

    def prediction_rows(self, since_days: int | None = None) -> list[PredictionRecord]:
        rows = sorted(self.predictions.values(), key=lambda item: item[0])
        if since_days:
            cutoff = self._now() - timedelta(days=since_days)
            rows = [item for item in rows if item[0] >= cutoff]
        return [r for _, r in rows]
