"""
SQLite persistence for games.

Games are stored as their settings, the starting position and the list of
moves; loading replays the moves from that starting position.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from kvinti.core.board import PieceType
from kvinti.core.errors import KvintiError
from kvinti.core.game import GameRecord
from kvinti.core.notation import action_to_algebraic, record_from_text
from kvinti.core.state import BoardState, Piece

logger = logging.getLogger(__name__)

# Default database location
DEFAULT_DB_PATH = Path(os.environ.get("KVINTI_DB_PATH", Path(__file__).parent / "games.db"))


def init_db(db_path: Path = None) -> None:
    """Initialize the database schema."""
    if db_path is None:
        db_path = DEFAULT_DB_PATH
    with get_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS games (
                game_id TEXT PRIMARY KEY,
                player1_type TEXT NOT NULL DEFAULT 'human',
                player2_type TEXT NOT NULL DEFAULT 'ai',
                difficulty TEXT NOT NULL DEFAULT 'moderate',
                initial_json TEXT,
                moves_json TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        # Migrations for existing databases
        migrations = [
            "ALTER TABLE games ADD COLUMN initial_json TEXT",
        ]
        for sql in migrations:
            try:
                conn.execute(sql)
            except sqlite3.OperationalError:
                pass  # Column already exists

        conn.execute("CREATE INDEX IF NOT EXISTS idx_games_updated ON games(updated_at)")
        conn.commit()


@contextmanager
def get_connection(db_path: Path = None):
    """Get a database connection with proper cleanup."""
    if db_path is None:
        db_path = DEFAULT_DB_PATH
    conn = sqlite3.connect(str(db_path), timeout=10.0)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def state_to_json(state: BoardState) -> str:
    """Serialize a position as pieces [key, kind, player, row, col] plus the side to move."""
    return json.dumps({
        "current_player": state.current_player,
        "pieces": [
            [p.key, p.kind.value, p.player, p.pos[0], p.pos[1]]
            for p in state.pieces
        ],
    })


def state_from_json(text: str) -> BoardState:
    data = json.loads(text)
    pieces = tuple(
        Piece(key, PieceType(kind), player, (row, col))
        for key, kind, player, row, col in data["pieces"]
    )
    return BoardState(pieces, data["current_player"])


def record_to_moves(record: GameRecord) -> list[str]:
    """Moves of a record in short notation."""
    return [action_to_algebraic(action) for action in record.actions]


def moves_to_record(moves: list[str], initial: Optional[BoardState] = None) -> GameRecord:
    """Replay short-notation moves from initial (default: the standard layout)."""
    return record_from_text(' '.join(moves), initial)


def save_game(
    game_id: str,
    record: GameRecord,
    player1_type: str = "human",
    player2_type: str = "ai",
    difficulty: str = "moderate",
    db_path: Path = None
) -> None:
    """Save or update a game in the database."""
    if db_path is None:
        db_path = DEFAULT_DB_PATH

    now = datetime.utcnow().isoformat()
    initial_json = state_to_json(record.initial)
    moves_json = json.dumps(record_to_moves(record))

    with get_connection(db_path) as conn:
        conn.execute("""
            INSERT INTO games (game_id, player1_type, player2_type, difficulty,
                               initial_json, moves_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(game_id) DO UPDATE SET
                initial_json = excluded.initial_json,
                moves_json = excluded.moves_json,
                updated_at = excluded.updated_at
        """, (game_id, player1_type, player2_type, difficulty,
              initial_json, moves_json, now, now))
        conn.commit()


def load_game(game_id: str, db_path: Path = None) -> Optional[dict]:
    """
    Load one game, or None if it does not exist.

    Raises KvintiError or ValueError if the stored moves no longer replay.
    """
    if db_path is None:
        db_path = DEFAULT_DB_PATH
    with get_connection(db_path) as conn:
        row = conn.execute("SELECT * FROM games WHERE game_id = ?", (game_id,)).fetchone()
    if row is None:
        return None
    return _row_to_game(row)


def load_all_games(db_path: Path = None) -> list[dict]:
    """Load all games whose move lists still replay cleanly."""
    if db_path is None:
        db_path = DEFAULT_DB_PATH
    with get_connection(db_path) as conn:
        rows = conn.execute("SELECT * FROM games ORDER BY created_at").fetchall()

    games = []
    for row in rows:
        try:
            games.append(_row_to_game(row))
        except (KvintiError, ValueError) as e:
            logger.warning(f"Skipping game {row['game_id']}: {e}")
    return games


def _row_to_game(row: sqlite3.Row) -> dict:
    moves = json.loads(row["moves_json"]) if row["moves_json"] else []
    # Rows written before the initial_json column start from the standard layout
    initial = state_from_json(row["initial_json"]) if row["initial_json"] else None
    return {
        "game_id": row["game_id"],
        "player1_type": row["player1_type"],
        "player2_type": row["player2_type"],
        "difficulty": row["difficulty"],
        "moves": moves,
        "record": moves_to_record(moves, initial),
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def delete_game(game_id: str, db_path: Path = None) -> bool:
    """Delete a game. Returns True if a row was removed."""
    if db_path is None:
        db_path = DEFAULT_DB_PATH
    with get_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM games WHERE game_id = ?", (game_id,))
        conn.commit()
        return cursor.rowcount > 0


def cleanup_old_games(max_age_days: int = 7, db_path: Path = None) -> int:
    """Delete games not updated for max_age_days. Returns the number deleted."""
    if db_path is None:
        db_path = DEFAULT_DB_PATH
    cutoff = (datetime.utcnow() - timedelta(days=max_age_days)).isoformat()
    with get_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM games WHERE updated_at < ?", (cutoff,))
        conn.commit()
        return cursor.rowcount
