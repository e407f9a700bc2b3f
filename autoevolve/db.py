"""Database layer for the evolution pipeline."""

import os
from contextlib import contextmanager
from pathlib import Path

import psycopg
from psycopg.types.json import Jsonb

from autoevolve.models import EvolutionState, PredictionRecord

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def get_connection_string() -> str:
    """Get database connection string from environment."""
    return os.environ.get(
        "DATABASE_URL",
        "postgresql://localhost:5432/chess_evolution?user=postgres&password=postgres",
    )


@contextmanager
def get_connection(conninfo: str | None = None):
    """Context manager for database connections."""
    conn = psycopg.connect(conninfo or get_connection_string())
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def apply_schema(conn: psycopg.Connection) -> None:
    """Create tables and indexes if they do not exist."""
    with conn.cursor() as cur:
        cur.execute(SCHEMA_PATH.read_text(encoding="utf-8"))


def insert_prediction(conn: psycopg.Connection, record: PredictionRecord) -> bool:
    """
    Append a prediction record. Uses game_id as conflict key.
    Returns False when a record for the game already exists.
    """
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO prediction_attempts (
                game_id, game_name, fen, cutoff_ply, archetype,
                trajectory_prediction, trajectory_confidence, trajectory_correct,
                evaluation_prediction, evaluation_confidence, evaluation_correct,
                eval_score, eval_depth, actual_outcome, source_tag, quality_tier,
                provider_tag, game_tier, white_rating, black_rating, time_control, data_source
            ) VALUES (
                %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s
            )
            ON CONFLICT (game_id) DO NOTHING
            """,
            (
                record.game_id,
                record.game_name,
                record.fen,
                record.cutoff_ply,
                record.archetype,
                record.trajectory_prediction,
                record.trajectory_confidence,
                record.trajectory_correct,
                record.evaluation_prediction,
                record.evaluation_confidence,
                record.evaluation_correct,
                record.eval_score,
                record.eval_depth,
                record.actual_outcome,
                record.source_tag,
                record.quality_tier,
                record.provider_tag,
                record.game_tier,
                record.white_rating,
                record.black_rating,
                record.time_control,
                record.data_source,
            ),
        )
        return cur.rowcount == 1


def get_recent_game_ids(conn: psycopg.Connection, window_days: int, limit: int | None = None) -> set[str]:
    """Game ids persisted within the last ``window_days`` days, newest first."""
    sql = """
        SELECT game_id FROM prediction_attempts
        WHERE created_at >= NOW() - make_interval(days => %s)
        ORDER BY created_at DESC
    """
    params: list = [window_days]
    if limit:
        sql += " LIMIT %s"
        params.append(limit)
    with conn.cursor() as cur:
        cur.execute(sql, params)
        return {r[0] for r in cur.fetchall()}


def _state_from_row(row) -> EvolutionState:
    return EvolutionState(
        state_id=row[0],
        generation=row[1],
        fitness_score=row[2],
        total_predictions=row[3],
        per_archetype_stats=row[4] or {},
        per_tier_stats=row[5] or {},
        last_updated_at=row[6],
    )


def get_latest_evolution_state(conn: psycopg.Connection) -> EvolutionState | None:
    """Most recently appended evolution state version, if any."""
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT id, generation, fitness_score, total_predictions,
                per_archetype_stats, per_tier_stats, created_at
            FROM evolution_state
            ORDER BY id DESC
            LIMIT 1
            """
        )
        row = cur.fetchone()
    return _state_from_row(row) if row else None


def append_evolution_state(conn: psycopg.Connection, state: EvolutionState) -> EvolutionState:
    """Append a new state version. Returns it with id and timestamp populated."""
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO evolution_state (
                generation, fitness_score, total_predictions, per_archetype_stats, per_tier_stats, created_at
            ) VALUES (%s, %s, %s, %s, %s, COALESCE(%s, NOW()))
            RETURNING id, generation, fitness_score, total_predictions,
                per_archetype_stats, per_tier_stats, created_at
            """,
            (
                state.generation,
                state.fitness_score,
                state.total_predictions,
                Jsonb(state.per_archetype_stats),
                Jsonb(state.per_tier_stats),
                state.last_updated_at,
            ),
        )
        row = cur.fetchone()
    if not row:
        raise RuntimeError("append_evolution_state failed to return row")
    return _state_from_row(row)


def log_evolution_event(conn: psycopg.Connection, event_type: str, payload: dict) -> None:
    """Record an audit event."""
    with conn.cursor() as cur:
        cur.execute(
            "INSERT INTO evolution_events (event_type, payload) VALUES (%s, %s)",
            (event_type, Jsonb(payload)),
        )


def get_prediction_counts(conn: psycopg.Connection) -> dict:
    """Prediction totals by quality tier, plus divergent and correct counts."""
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT quality_tier,
                COUNT(*),
                COUNT(*) FILTER (WHERE trajectory_prediction <> evaluation_prediction),
                COUNT(*) FILTER (WHERE trajectory_correct),
                COUNT(*) FILTER (WHERE evaluation_correct)
            FROM prediction_attempts
            GROUP BY quality_tier
            """
        )
        rows = cur.fetchall()
    return {
        r[0]: {
            "total": r[1],
            "divergent": r[2],
            "trajectory_correct": r[3],
            "evaluation_correct": r[4],
        }
        for r in rows
    }


def get_prediction_rows(conn: psycopg.Connection, since_days: int | None = None) -> list[PredictionRecord]:
    """Stored predictions, optionally limited to the last ``since_days`` days."""
    sql = """
        SELECT game_id, cutoff_ply, trajectory_prediction, evaluation_prediction, archetype,
            trajectory_confidence, evaluation_confidence, actual_outcome,
            trajectory_correct, evaluation_correct, source_tag, quality_tier,
            eval_score, eval_depth, provider_tag
        FROM prediction_attempts
    """
    params: list = []
    if since_days:
        sql += " WHERE created_at >= NOW() - make_interval(days => %s)"
        params.append(since_days)
    sql += " ORDER BY created_at"
    with conn.cursor() as cur:
        cur.execute(sql, params)
        rows = cur.fetchall()
    return [
        PredictionRecord(
            game_id=r[0], cutoff_ply=r[1], trajectory_prediction=r[2],
            evaluation_prediction=r[3], archetype=r[4], trajectory_confidence=r[5],
            evaluation_confidence=r[6], actual_outcome=r[7], trajectory_correct=r[8],
            evaluation_correct=r[9], source_tag=r[10], quality_tier=r[11],
            eval_score=r[12], eval_depth=r[13] or 0, provider_tag=r[14] or "",
        )
        for r in rows
    ]


def main():
    """Apply the schema to the database named by DATABASE_URL."""
    with get_connection() as conn:
        apply_schema(conn)
    print(f"Schema applied from {SCHEMA_PATH.name}")


if __name__ == "__main__":
    main()
