"""
Command history sink.

SQLite event log of finished measurements. Optional: with no recorder the
timing core runs in-memory only. Every storage error surfaces as
PersistenceFailure so the caller can log it and carry on.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
import logging
import os
from pathlib import Path
import shutil
import sqlite3
from typing import Protocol, runtime_checkable
import uuid

from cmdclock.errors import PersistenceFailure

logger = logging.getLogger(__name__)

_COLUMNS = "command_line, duration_ms, exit_code, start_time, end_time, session_id"


@runtime_checkable
class HistoryRecorder(Protocol):
    """Anything that can durably record one finished command."""

    def record(
        self,
        command_line: str,
        duration_ms: float,
        exit_code: int,
        start_time: datetime,
        end_time: datetime,
    ) -> None: ...


@dataclass
class HistoryEntry:
    """A persisted command."""

    command_line: str
    duration_ms: float
    exit_code: int
    start_time: str
    end_time: str
    session_id: str


@dataclass
class HistoryStats:
    total_commands: int
    unique_commands: int
    avg_duration_ms: float
    db_size_bytes: int


@dataclass
class RepairReport:
    """Outcome of `SQLiteHistoryRecorder.repair()`."""

    problems: list[str]
    rows_kept: int
    backup_path: Path | None = None

    @property
    def rebuilt(self) -> bool:
        return self.backup_path is not None


def command_name(command_line: str) -> str:
    """First word of a command line, the key the in-memory store uses."""
    parts = command_line.strip().split(None, 1)
    return parts[0] if parts else ""


class SQLiteHistoryRecorder:
    """Appends one row per finished command to a SQLite database."""

    def __init__(self, db_path: str | Path, session_id: str | None = None):
        self.db_path = Path(db_path).expanduser()
        self.session_id = session_id or os.getenv("CMDCLOCK_SESSION_ID") or uuid.uuid4().hex[:8]
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise PersistenceFailure(f"cannot open {self.db_path}: {e}") from e

        if not self._initialized:
            try:
                self._init_schema(conn)
            except sqlite3.Error as e:
                conn.close()
                raise PersistenceFailure(f"cannot initialise {self.db_path}: {e}") from e
            self._initialized = True
        return conn

    @staticmethod
    def _init_schema(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS command_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                command_line TEXT NOT NULL,
                duration_ms REAL NOT NULL,
                exit_code INTEGER NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                session_id TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_start_time
            ON command_history(start_time DESC)
        """)

        conn.commit()

    def record(
        self,
        command_line: str,
        duration_ms: float,
        exit_code: int,
        start_time: datetime,
        end_time: datetime,
    ) -> None:
        """Insert one finished command."""
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO command_history (
                    command_line, duration_ms, exit_code, start_time, end_time, session_id
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    command_line,
                    float(duration_ms),
                    int(exit_code),
                    start_time.isoformat(),
                    end_time.isoformat(),
                    self.session_id,
                ),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"insert failed: {e}") from e
        finally:
            conn.close()

    def recent(self, limit: int = 20) -> list[HistoryEntry]:
        """Most recent commands, newest first."""
        if not self.db_path.exists():
            return []
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT command_line, duration_ms, exit_code, start_time, end_time, session_id
                FROM command_history
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"query failed: {e}") from e
        finally:
            conn.close()
        return [HistoryEntry(*row) for row in rows]

    def durations_by_command(self) -> dict[str, list[float]]:
        """Command name -> durations, oldest first."""
        if not self.db_path.exists():
            return {}
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT command_line, duration_ms FROM command_history ORDER BY id ASC"
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"query failed: {e}") from e
        finally:
            conn.close()

        grouped: dict[str, list[float]] = defaultdict(list)
        for line, duration in rows:
            name = command_name(line)
            if name:
                grouped[name].append(float(duration))
        return dict(grouped)

    def statistics(self) -> HistoryStats:
        if not self.db_path.exists():
            return HistoryStats(0, 0, 0.0, 0)
        conn = self._connect()
        try:
            row = conn.execute("""
                SELECT
                    COUNT(*) as total,
                    AVG(duration_ms) as avg_duration
                FROM command_history
            """).fetchone()
            lines = conn.execute("SELECT DISTINCT command_line FROM command_history").fetchall()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"query failed: {e}") from e
        finally:
            conn.close()

        unique = {command_name(line) for (line,) in lines}
        unique.discard("")
        return HistoryStats(
            total_commands=row[0] or 0,
            unique_commands=len(unique),
            avg_duration_ms=row[1] or 0.0,
            db_size_bytes=self.db_path.stat().st_size,
        )

    def clear(self) -> int:
        """Delete every row. Returns count cleared."""
        if not self.db_path.exists():
            return 0
        conn = self._connect()
        try:
            cursor = conn.execute("DELETE FROM command_history")
            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceFailure(f"clear failed: {e}") from e
        finally:
            conn.close()

    def optimize(self) -> None:
        conn = self._connect()
        try:
            conn.execute("VACUUM")
            conn.execute("ANALYZE")
        except sqlite3.Error as e:
            raise PersistenceFailure(f"optimize failed: {e}") from e
        finally:
            conn.close()

    def integrity_check(self) -> list[str]:
        """Problems reported by SQLite; empty list means healthy."""
        conn = self._connect()
        try:
            rows = conn.execute("PRAGMA integrity_check").fetchall()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"integrity check failed: {e}") from e
        finally:
            conn.close()
        problems = [row[0] for row in rows]
        return [] if problems == ["ok"] else problems

    def backup(self, dest: str | Path | None = None) -> Path:
        """Create a timestamped copy of the database. Returns the copy's path.

        `dest` may be a directory (the copy is placed inside it) or a file path.
        """
        if not self.db_path.exists():
            raise PersistenceFailure(f"no history database at {self.db_path}")

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        name = f"{self.db_path.name}.bak.{timestamp}"
        if dest is None:
            backup_path = self.db_path.with_name(name)
        else:
            backup_path = Path(dest).expanduser()
            if backup_path.is_dir():
                backup_path = backup_path / name

        try:
            backup_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(self.db_path, backup_path)
        except OSError as e:
            raise PersistenceFailure(f"backup to {backup_path} failed: {e}") from e
        return backup_path

    def repair(self, force: bool = False) -> RepairReport:
        """Rebuild a damaged database from the rows that can still be read.

        A healthy database is left alone unless `force` is set. Before a rebuild
        the current file is backed up; rows past the first unreadable page are lost.
        """
        if not self.db_path.exists():
            return RepairReport(problems=[], rows_kept=0)

        try:
            problems = self.integrity_check()
        except PersistenceFailure as e:
            problems = [str(e)]
        if not problems and not force:
            return RepairReport(problems=[], rows_kept=self.statistics().total_commands)

        backup_path = self.backup()
        rows = self._salvage()
        rebuild_path = self.db_path.with_name(f"{self.db_path.name}.rebuild")
        try:
            rebuild_path.unlink(missing_ok=True)
            conn = sqlite3.connect(rebuild_path)
        except (sqlite3.Error, OSError) as e:
            raise PersistenceFailure(f"cannot create {rebuild_path}: {e}") from e
        try:
            self._init_schema(conn)
            conn.executemany(
                f"INSERT INTO command_history ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)", rows
            )
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"rebuild failed: {e}") from e
        finally:
            conn.close()

        try:
            os.replace(rebuild_path, self.db_path)
        except OSError as e:
            raise PersistenceFailure(f"cannot replace {self.db_path}: {e}") from e
        self._initialized = False
        logger.info("history rebuilt: %d rows kept, backup at %s", len(rows), backup_path)
        return RepairReport(problems=problems, rows_kept=len(rows), backup_path=backup_path)

    def _salvage(self) -> list[tuple]:
        rows: list[tuple] = []
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            logger.warning("nothing salvaged from %s: %s", self.db_path, e)
            return rows
        try:
            for row in conn.execute(f"SELECT {_COLUMNS} FROM command_history ORDER BY id ASC"):
                rows.append(row)
        except sqlite3.DatabaseError as e:
            logger.warning("salvage stopped after %d rows: %s", len(rows), e)
        finally:
            conn.close()
        return rows
