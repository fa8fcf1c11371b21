"""
Per-project staging of locally recorded changes.

This module provides the StagingStore class, an SQLite-backed arena of
project records and their change records. Every mutation runs inside an
explicit transaction (BEGIN IMMEDIATE), so a read-modify-write sequence for
a project cannot interleave with another writer.
"""

import re
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

from ..models.staging import ChangeType, PendingChange, ProjectRecord
from ..utils.error_handling import (
    InternalError,
    ProjectNotFoundError,
    ValidationError,
    with_error_handling,
)
from ..utils.logging import get_logger
from ..utils.validators import (
    validate_commit_sha,
    validate_owner,
    validate_repository_name,
)

logger = get_logger("staging.store")

DEFAULT_DB_PATH = Path.home() / ".project-hub" / "staging.db"

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL UNIQUE COLLATE NOCASE,
        path TEXT NOT NULL,
        type TEXT NOT NULL,
        description TEXT,
        repository_owner TEXT,
        repository_name TEXT,
        last_commit TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS changes (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        project_id TEXT NOT NULL,
        type TEXT NOT NULL,
        description TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        committed INTEGER NOT NULL DEFAULT 0,
        commit_sha TEXT,
        FOREIGN KEY (project_id) REFERENCES projects(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS change_files (
        change_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        file_path TEXT NOT NULL,
        PRIMARY KEY (change_id, file_path),
        FOREIGN KEY (change_id) REFERENCES changes(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS changes_project_idx ON changes(project_id, committed)",
    "CREATE INDEX IF NOT EXISTS change_files_change_idx ON change_files(change_id)",
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize(name: str) -> str:
    return re.sub(r"[^a-z0-9-]", "", re.sub(r"\s+", "-", name.lower()))


def _row_to_project(row: sqlite3.Row) -> ProjectRecord:
    return ProjectRecord(
        id=row["id"],
        name=row["name"],
        path=row["path"],
        type=row["type"],
        description=row["description"] or "",
        repository_owner=row["repository_owner"],
        repository_name=row["repository_name"],
        last_commit=row["last_commit"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class StagingTransaction:
    """
    Operations on one project's changes inside an open transaction.

    Obtained from StagingStore.transaction(); valid only inside that block.
    """

    def __init__(self, conn: sqlite3.Connection, project_id: str):
        self._conn = conn
        self.project_id = project_id

    def _load_files(self, change_id: str) -> List[str]:
        rows = self._conn.execute(
            "SELECT file_path FROM change_files WHERE change_id = ? ORDER BY position",
            (change_id,),
        ).fetchall()
        return [row["file_path"] for row in rows]

    def _row_to_change(self, row: sqlite3.Row) -> PendingChange:
        return PendingChange(
            id=row["id"],
            project_id=row["project_id"],
            type=ChangeType.parse(row["type"]),
            description=row["description"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            files=self._load_files(row["id"]),
            committed=bool(row["committed"]),
            commit_sha=row["commit_sha"],
        )

    def record_change(
        self,
        change_type: Union[ChangeType, str],
        description: str,
        files: Optional[Sequence[str]] = None,
    ) -> PendingChange:
        """Append an uncommitted change record."""
        if not description or not description.strip():
            raise ValidationError("Change description cannot be empty")

        change = PendingChange(
            id=str(uuid.uuid4()),
            project_id=self.project_id,
            type=ChangeType.parse(change_type),
            description=description.strip(),
            timestamp=datetime.now(timezone.utc),
            files=list(dict.fromkeys(files or [])),
        )

        self._conn.execute(
            """
            INSERT INTO changes (id, project_id, type, description, timestamp, committed)
            VALUES (?, ?, ?, ?, ?, 0)
            """,
            (
                change.id,
                change.project_id,
                change.type.value,
                change.description,
                change.timestamp.isoformat(),
            ),
        )
        self._conn.executemany(
            "INSERT INTO change_files (change_id, position, file_path) VALUES (?, ?, ?)",
            [(change.id, position, path) for position, path in enumerate(change.files)],
        )
        return change

    def list_changes(self, committed: Optional[bool] = None) -> List[PendingChange]:
        """Return change records in insertion order, optionally filtered."""
        query = "SELECT * FROM changes WHERE project_id = ?"
        params: list = [self.project_id]
        if committed is not None:
            query += " AND committed = ?"
            params.append(1 if committed else 0)
        query += " ORDER BY seq"

        rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_change(row) for row in rows]

    def get_pending_changes(self) -> List[PendingChange]:
        return self.list_changes(committed=False)

    def clear_committed_changes(self, commit_sha: str) -> int:
        """
        Mark every uncommitted change as committed with commit_sha.

        The sha is not checked against the files each change names.

        Returns:
            Number of change records that transitioned to committed
        """
        validate_commit_sha(commit_sha)
        cursor = self._conn.execute(
            """
            UPDATE changes SET committed = 1, commit_sha = ?
            WHERE project_id = ? AND committed = 0
            """,
            (commit_sha, self.project_id),
        )
        self._conn.execute(
            "UPDATE projects SET last_commit = ?, updated_at = ? WHERE id = ?",
            (commit_sha, _now(), self.project_id),
        )
        return cursor.rowcount


class StagingStore:
    """
    SQLite-backed store of projects and their pending changes.

    Args:
        db_path: Database file, or ":memory:" for a private in-memory store
    """

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = db_path if db_path is not None else DEFAULT_DB_PATH
        self._lock = threading.RLock()
        self._conn = self._init_db()

    def _init_db(self) -> sqlite3.Connection:
        if self.db_path != ":memory:":
            self.db_path = Path(self.db_path).expanduser()
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Autocommit mode: transactions are opened explicitly with BEGIN IMMEDIATE
        conn = sqlite3.connect(
            str(self.db_path), timeout=10, check_same_thread=False, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        if self.db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")

        for statement in _SCHEMA:
            conn.execute(statement)
        return conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._conn.in_transaction:
                # Nested inside transaction(); the outer block commits
                yield self._conn
                return
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as e:
                raise InternalError(
                    f"Staging store unavailable: {e}", operation="staging"
                ) from e
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")

    def _require_project(self, conn: sqlite3.Connection, project_id: str) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        if row is None:
            raise ProjectNotFoundError(project_id)
        return row

    @contextmanager
    def transaction(self, project_id: str) -> Iterator[StagingTransaction]:
        """
        Open an explicit transaction for one project.

        Everything done through the yielded StagingTransaction commits
        together when the block exits, or rolls back on an exception.
        StagingStore methods called from the same thread inside the block
        join the open transaction.

        Raises:
            ProjectNotFoundError: If the project does not exist
        """
        with self._write() as conn:
            self._require_project(conn, project_id)
            yield StagingTransaction(conn, project_id)

    # -- Projects -------------------------------------------------------------

    def register_project(
        self,
        name: str,
        path: str = "",
        project_type: str = "generic",
        description: str = "",
    ) -> ProjectRecord:
        """Create a project record. Names are unique, case-insensitively."""
        if not name or not name.strip():
            raise ValidationError("Project name cannot be empty")

        now = _now()
        project_id = str(uuid.uuid4())
        with self._write() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO projects (id, name, path, type, description, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (project_id, name.strip(), path, project_type, description, now, now),
                )
            except sqlite3.IntegrityError as e:
                raise ValidationError(f"Project {name} already exists") from e
            row = self._require_project(conn, project_id)

        logger.info(f"Registered project {name}", extra={"project_id": project_id})
        return _row_to_project(row)

    def get_project(self, project_id: str) -> ProjectRecord:
        with self._lock:
            return _row_to_project(self._require_project(self._conn, project_id))

    def list_projects(self) -> List[ProjectRecord]:
        with self._lock:
            rows = self._conn.execute("SELECT * FROM projects ORDER BY name").fetchall()
        return [_row_to_project(row) for row in rows]

    def find_project(self, name: str) -> Optional[ProjectRecord]:
        """
        Find a project by name.

        Names are compared after normalisation (lowercase, whitespace to
        dashes, punctuation dropped). An exact match wins over a partial one.
        """
        wanted = _normalize(name)
        if not wanted:
            return None

        projects = self.list_projects()
        for project in projects:
            if _normalize(project.name) == wanted:
                return project
        for project in projects:
            if wanted in _normalize(project.name):
                return project
        return None

    def link_repository(self, project_id: str, owner: str, repo: str) -> ProjectRecord:
        """Associate a project with a remote repository."""
        validate_owner(owner)
        validate_repository_name(repo)

        with self._write() as conn:
            self._require_project(conn, project_id)
            conn.execute(
                """
                UPDATE projects SET repository_owner = ?, repository_name = ?, updated_at = ?
                WHERE id = ?
                """,
                (owner, repo, _now(), project_id),
            )
            row = self._require_project(conn, project_id)

        logger.info(
            f"Linked project to {owner}/{repo}", extra={"project_id": project_id}
        )
        return _row_to_project(row)

    def delete_project(self, project_id: str) -> None:
        """Delete a project together with all of its change records."""
        with self._write() as conn:
            self._require_project(conn, project_id)
            conn.execute(
                """
                DELETE FROM change_files WHERE change_id IN
                    (SELECT id FROM changes WHERE project_id = ?)
                """,
                (project_id,),
            )
            conn.execute("DELETE FROM changes WHERE project_id = ?", (project_id,))
            conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))

        logger.info("Deleted project", extra={"project_id": project_id})

    # -- Changes --------------------------------------------------------------

    @with_error_handling(component="staging.store")
    def record_change(
        self,
        project_id: str,
        change_type: Union[ChangeType, str],
        description: str,
        files: Optional[Sequence[str]] = None,
    ) -> PendingChange:
        """
        Record a pending change for a project.

        Args:
            project_id: Owning project
            change_type: feature, bugfix, refactor, documentation or other;
                unrecognised values are stored as other
            description: Required free-text description
            files: Informational list of touched paths

        Returns:
            The new, uncommitted PendingChange
        """
        with self.transaction(project_id) as tx:
            change = tx.record_change(change_type, description, files)

        logger.info(
            f"Recorded {change.type.value} change",
            extra={"project_id": project_id, "change_id": change.id},
        )
        return change

    @with_error_handling(component="staging.store")
    def get_pending_changes(self, project_id: str) -> List[PendingChange]:
        """Return uncommitted changes in insertion order."""
        with self.transaction(project_id) as tx:
            return tx.get_pending_changes()

    def list_changes(
        self, project_id: str, committed: Optional[bool] = None
    ) -> List[PendingChange]:
        with self.transaction(project_id) as tx:
            return tx.list_changes(committed)

    @with_error_handling(component="staging.store")
    def clear_committed_changes(self, project_id: str, commit_sha: str) -> None:
        """
        Mark all of a project's pending changes as committed in one batch.

        Also moves the project's last_commit pointer to commit_sha.
        """
        with self.transaction(project_id) as tx:
            count = tx.clear_committed_changes(commit_sha)

        logger.info(
            f"Marked {count} change(s) as committed",
            extra={"project_id": project_id, "sha": commit_sha},
        )
