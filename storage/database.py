"""
Database management for ScoreRead.
Handles SQLite operations and schema management for pieces, spots and
practice session history.
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from config import Config
from core.dto import (
    Piece,
    PracticeSession,
    ReadinessLevel,
    SessionMode,
    SessionStatus,
    Spot,
    SpotPriority,
    SpotResult,
    SpotSession,
    as_utc,
)

logger = logging.getLogger(__name__)


def _ts(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as an ISO-8601 UTC string."""
    return as_utc(value).isoformat() if value is not None else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return as_utc(datetime.fromisoformat(value)) if value else None


class Database:
    """Manages SQLite database operations for ScoreRead.

    Implements the SpotRepository protocol. Every write commits immediately,
    so each call is an atomic single-record operation.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. Uses Config.DB_PATH if not provided.
        """
        self.db_path = db_path or Config.DB_PATH
        self.conn: Optional[sqlite3.Connection] = None

    def connect(self):
        """Establish database connection."""
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row  # Enable dict-like access
        # Enable foreign keys
        self.conn.execute("PRAGMA foreign_keys = ON")

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        if self.conn:
            if exc_type is None:
                self.conn.commit()
            else:
                self.conn.rollback()
            self.close()

    def initialize(self):
        """Create all tables and indexes."""
        if not self.conn:
            self.connect()

        self._create_tables()
        self._create_indexes()
        self.conn.commit()

    def _create_tables(self):
        """Create database tables."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS pieces (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                composer TEXT NOT NULL,
                difficulty INTEGER NOT NULL CHECK (difficulty BETWEEN 1 AND 5),
                concert_date TIMESTAMP,
                last_opened TIMESTAMP,
                project_id TEXT,
                tags TEXT DEFAULT '[]',
                total_time_spent INTEGER DEFAULT 0,
                is_favorite BOOLEAN DEFAULT 0,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)

        # color is stored for querying only; it is re-derived on load
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS spots (
                id TEXT PRIMARY KEY,
                piece_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                notes TEXT,
                page_number INTEGER NOT NULL,
                x REAL NOT NULL,
                y REAL NOT NULL,
                width REAL NOT NULL,
                height REAL NOT NULL,
                priority TEXT NOT NULL,
                readiness_level TEXT NOT NULL,
                color TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                next_due TIMESTAMP NOT NULL,
                practice_count INTEGER DEFAULT 0,
                success_count INTEGER DEFAULT 0,
                failure_count INTEGER DEFAULT 0,
                ease_factor REAL DEFAULT 2.5,
                interval_days INTEGER DEFAULT 0,
                repetitions INTEGER DEFAULT 0,
                last_practiced TIMESTAMP,
                last_result TEXT,
                recent_results TEXT DEFAULT '[]',
                is_active BOOLEAN DEFAULT 1
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS practice_sessions (
                id TEXT PRIMARY KEY,
                user_id TEXT,
                piece_id TEXT,
                name TEXT NOT NULL,
                mode TEXT NOT NULL,
                status TEXT NOT NULL,
                start_time TIMESTAMP NOT NULL,
                end_time TIMESTAMP,
                elapsed_seconds INTEGER DEFAULT 0
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS spot_sessions (
                session_id TEXT NOT NULL,
                order_index INTEGER NOT NULL,
                spot_id TEXT NOT NULL,
                allocated_time INTEGER NOT NULL,
                actual_elapsed INTEGER DEFAULT 0,
                result TEXT,
                started_at TIMESTAMP,
                completed_at TIMESTAMP,
                PRIMARY KEY (session_id, order_index),
                FOREIGN KEY (session_id) REFERENCES practice_sessions(id)
            )
        """)

    def _create_indexes(self):
        """Create database indexes for performance."""
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_spots_piece ON spots(piece_id)",
            "CREATE INDEX IF NOT EXISTS idx_spots_next_due ON spots(next_due)",
            "CREATE INDEX IF NOT EXISTS idx_sessions_start ON practice_sessions(start_time)",
            "CREATE INDEX IF NOT EXISTS idx_sessions_user ON practice_sessions(user_id)",
            "CREATE INDEX IF NOT EXISTS idx_spot_sessions_spot ON spot_sessions(spot_id)",
        ]

        for index_sql in indexes:
            self.conn.execute(index_sql)

    # Spot operations
    def get_all_spots(self, piece_id: Optional[str] = None) -> List[Spot]:
        """Get all spots, optionally limited to one piece, in creation order."""
        if piece_id is None:
            cursor = self.conn.execute("SELECT * FROM spots ORDER BY created_at, id")
        else:
            cursor = self.conn.execute(
                "SELECT * FROM spots WHERE piece_id = ? ORDER BY created_at, id", (piece_id,)
            )
        return [self._spot_from_row(row) for row in cursor.fetchall()]

    def get_spot(self, spot_id: str) -> Optional[Spot]:
        cursor = self.conn.execute("SELECT * FROM spots WHERE id = ?", (spot_id,))
        row = cursor.fetchone()
        return self._spot_from_row(row) if row else None

    def upsert_spot(self, spot: Spot) -> None:
        """Insert or replace a spot."""
        self.conn.execute(
            """
            INSERT OR REPLACE INTO spots
            (id, piece_id, title, description, notes, page_number, x, y, width, height,
             priority, readiness_level, color, created_at, updated_at, next_due,
             practice_count, success_count, failure_count, ease_factor, interval_days,
             repetitions, last_practiced, last_result, recent_results, is_active)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                spot.id,
                spot.piece_id,
                spot.title,
                spot.description,
                spot.notes,
                spot.page_number,
                spot.x,
                spot.y,
                spot.width,
                spot.height,
                spot.priority.value,
                spot.readiness_level.value,
                spot.color.value,
                _ts(spot.created_at),
                _ts(spot.updated_at),
                _ts(spot.next_due),
                spot.practice_count,
                spot.success_count,
                spot.failure_count,
                spot.ease_factor,
                spot.interval_days,
                spot.repetitions,
                _ts(spot.last_practiced),
                spot.last_result.value if spot.last_result else None,
                json.dumps([r.value for r in spot.recent_results]),
                spot.is_active,
            ),
        )
        self.conn.commit()

    def delete_spot(self, spot_id: str) -> None:
        self.conn.execute("DELETE FROM spots WHERE id = ?", (spot_id,))
        self.conn.commit()

    def _spot_from_row(self, row: sqlite3.Row) -> Spot:
        spot = Spot(
            id=row["id"],
            piece_id=row["piece_id"],
            title=row["title"],
            description=row["description"],
            notes=row["notes"],
            page_number=row["page_number"],
            x=row["x"],
            y=row["y"],
            width=row["width"],
            height=row["height"],
            priority=SpotPriority(row["priority"]),
            readiness_level=ReadinessLevel(row["readiness_level"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            next_due=_parse_ts(row["next_due"]),
            practice_count=row["practice_count"],
            success_count=row["success_count"],
            failure_count=row["failure_count"],
            ease_factor=row["ease_factor"],
            interval_days=row["interval_days"],
            repetitions=row["repetitions"],
            last_practiced=_parse_ts(row["last_practiced"]),
            last_result=SpotResult(row["last_result"]) if row["last_result"] else None,
            recent_results=tuple(SpotResult(r) for r in json.loads(row["recent_results"] or "[]")),
            is_active=bool(row["is_active"]),
        )
        if row["color"] != spot.color.value:
            logger.warning(
                f"Stored color '{row['color']}' of spot {spot.id} diverges from derived "
                f"'{spot.color.value}'; using derived value"
            )
        return spot

    # Piece operations
    def get_pieces(self) -> List[Piece]:
        cursor = self.conn.execute("SELECT * FROM pieces ORDER BY created_at, id")
        return [self._piece_from_row(row) for row in cursor.fetchall()]

    def get_piece(self, piece_id: str) -> Optional[Piece]:
        cursor = self.conn.execute("SELECT * FROM pieces WHERE id = ?", (piece_id,))
        row = cursor.fetchone()
        return self._piece_from_row(row) if row else None

    def upsert_piece(self, piece: Piece) -> None:
        """Insert or replace piece metadata. Spots are stored with upsert_spot()."""
        self.conn.execute(
            """
            INSERT OR REPLACE INTO pieces
            (id, title, composer, difficulty, concert_date, last_opened, project_id,
             tags, total_time_spent, is_favorite, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                piece.id,
                piece.title,
                piece.composer,
                piece.difficulty,
                _ts(piece.concert_date),
                _ts(piece.last_opened),
                piece.project_id,
                json.dumps(list(piece.tags)),
                piece.total_time_spent,
                piece.is_favorite,
                _ts(piece.created_at),
                _ts(piece.updated_at),
            ),
        )
        self.conn.commit()

    def delete_piece(self, piece_id: str) -> None:
        """Delete a piece and the spots it owns."""
        self.conn.execute("DELETE FROM spots WHERE piece_id = ?", (piece_id,))
        self.conn.execute("DELETE FROM pieces WHERE id = ?", (piece_id,))
        self.conn.commit()

    def _piece_from_row(self, row: sqlite3.Row) -> Piece:
        return Piece(
            id=row["id"],
            title=row["title"],
            composer=row["composer"],
            difficulty=row["difficulty"],
            concert_date=_parse_ts(row["concert_date"]),
            last_opened=_parse_ts(row["last_opened"]),
            project_id=row["project_id"],
            tags=tuple(json.loads(row["tags"] or "[]")),
            total_time_spent=row["total_time_spent"],
            is_favorite=bool(row["is_favorite"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            spots=tuple(self.get_all_spots(row["id"])),
        )

    # Session history operations
    def record_session(self, session: PracticeSession) -> None:
        """Append a finished session and its spot entries.

        Raises:
            ValueError: If the session id has already been recorded
        """
        # Session row and spot rows commit together or not at all
        with self.conn:
            try:
                self.conn.execute(
                    """
                    INSERT INTO practice_sessions
                    (id, user_id, piece_id, name, mode, status, start_time, end_time, elapsed_seconds)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        session.id,
                        session.user_id,
                        session.piece_id,
                        session.name,
                        session.mode.value,
                        session.status.value,
                        _ts(session.start_time),
                        _ts(session.end_time),
                        session.elapsed_seconds,
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Session {session.id} already recorded") from e

            self.conn.executemany(
                """
                INSERT INTO spot_sessions
                (session_id, order_index, spot_id, allocated_time, actual_elapsed,
                 result, started_at, completed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                [
                    (
                        session.id,
                        s.order_index,
                        s.spot_id,
                        s.allocated_time,
                        s.actual_elapsed,
                        s.result.value if s.result else None,
                        _ts(s.started_at),
                        _ts(s.completed_at),
                    )
                    for s in session.spot_sessions
                ],
            )

    def get_sessions_since(self, since: datetime) -> List[PracticeSession]:
        """Get recorded sessions started at or after ``since``, oldest first."""
        cursor = self.conn.execute(
            "SELECT * FROM practice_sessions WHERE start_time >= ? ORDER BY start_time, id",
            (_ts(since),),
        )
        return [self._session_from_row(row) for row in cursor.fetchall()]

    def _session_from_row(self, row: sqlite3.Row) -> PracticeSession:
        cursor = self.conn.execute(
            "SELECT * FROM spot_sessions WHERE session_id = ? ORDER BY order_index",
            (row["id"],),
        )
        spot_sessions = tuple(
            SpotSession(
                spot_id=s["spot_id"],
                order_index=s["order_index"],
                allocated_time=s["allocated_time"],
                actual_elapsed=s["actual_elapsed"],
                result=SpotResult(s["result"]) if s["result"] else None,
                started_at=_parse_ts(s["started_at"]),
                completed_at=_parse_ts(s["completed_at"]),
            )
            for s in cursor.fetchall()
        )
        return PracticeSession(
            id=row["id"],
            name=row["name"],
            mode=SessionMode(row["mode"]),
            status=SessionStatus(row["status"]),
            spot_sessions=spot_sessions,
            start_time=_parse_ts(row["start_time"]),
            end_time=_parse_ts(row["end_time"]),
            piece_id=row["piece_id"],
            user_id=row["user_id"],
            elapsed_seconds=row["elapsed_seconds"],
        )
