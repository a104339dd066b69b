from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .attempts import AttemptLog
from .cards import CardStore
from .config import settings
from .errors import StorageReadFailed, StorageUnavailable, StorageWriteFailed
from .logging import logger


class StudyStore:
    """SQLite-backed handle owning the attempt log and the card store.

    - open()/close() で明示的にライフサイクルを管理する（モジュール単位のシングルトンは持たない）
    - attempts: 追記専用の回答履歴 / cards: (quiz, item) 単位の復習スケジュール
    - 各書き込みは 1 トランザクションで完結し、attempts と cards を跨ぐトランザクションは張らない
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path or settings.study_db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self.attempts = AttemptLog(self)
        self.cards = CardStore(self)

    # --- lifecycle ---
    def open(self) -> "StudyStore":
        if self._conn is not None:
            return self
        conn: Optional[sqlite3.Connection] = None
        try:
            self._ensure_dirs()
            conn = self._connect()
            conn.execute("pragma journal_mode=WAL;")
            self._init_db(conn)
        except (sqlite3.Error, OSError) as exc:
            if conn is not None:
                conn.close()
            logger.error("store_open_failed", db_path=self.db_path, error=str(exc))
            raise StorageUnavailable("open", f"cannot open study store at {self.db_path}: {exc}") from exc
        self._conn = conn
        logger.info("store_opened", db_path=self.db_path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info("store_closed", db_path=self.db_path)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def is_memory(self) -> bool:
        return self.db_path == ":memory:"

    def __enter__(self) -> "StudyStore":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- low-level helpers ---
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_dirs(self) -> None:
        if self.is_memory:
            return
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS attempts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ts INTEGER NOT NULL,
                quiz_id TEXT NOT NULL,
                quiz_title TEXT NOT NULL DEFAULT '',
                quiz_source_url TEXT NOT NULL DEFAULT '',
                total INTEGER NOT NULL DEFAULT 0,
                correct INTEGER NOT NULL DEFAULT 0,
                score_sum REAL NOT NULL DEFAULT 0,
                score_items INTEGER NOT NULL DEFAULT 0,
                item_meta TEXT NOT NULL DEFAULT '{}',
                user_answers TEXT NOT NULL DEFAULT '{}',
                result_state TEXT NOT NULL DEFAULT '{}'
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_attempts_ts ON attempts(ts);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_attempts_quiz_ts ON attempts(quiz_id, ts);")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS cards (
                key TEXT PRIMARY KEY,
                quiz_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                tag TEXT NOT NULL,
                reps INTEGER NOT NULL DEFAULT 0,
                interval_days REAL NOT NULL DEFAULT 0,
                ease REAL NOT NULL DEFAULT 2.5,
                last_quality INTEGER,
                last_ts INTEGER,
                due_ts INTEGER NOT NULL
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_cards_due ON cards(due_ts);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_cards_quiz_due ON cards(quiz_id, due_ts);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_cards_tag_due ON cards(tag, due_ts);")

    def _require_open(self, operation: str) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageUnavailable(operation, f"{operation}: study store is not open")
        return self._conn

    @contextmanager
    def reading(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Run a read under the handle lock, translating sqlite errors."""
        with self._lock:
            conn = self._require_open(operation)
            try:
                yield conn
            except sqlite3.Error as exc:
                logger.error("storage_read_failed", operation=operation, error=str(exc))
                raise StorageReadFailed(operation, f"{operation}: {exc}") from exc

    @contextmanager
    def snapshot(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Yield a dedicated read connection pinned to one WAL snapshot.

        共有接続とは別の接続で読み取りトランザクション（deferred BEGIN）を開き、
        最初の SELECT 時点のスナップショットを接続を閉じるまで保持する。
        ハンドルのロックは保持しないため、読み取り中も書き込みは進められる。
        """
        with self._lock:
            self._require_open(operation)
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self._connect()
            conn.execute("BEGIN;")
        except sqlite3.Error as exc:
            if conn is not None:
                conn.close()
            logger.error("storage_read_failed", operation=operation, error=str(exc))
            raise StorageReadFailed(operation, f"{operation}: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            logger.error("storage_read_failed", operation=operation, error=str(exc))
            raise StorageReadFailed(operation, f"{operation}: {exc}") from exc
        finally:
            # 読み取り専用のため COMMIT せずに閉じればトランザクションは破棄される
            conn.close()

    @contextmanager
    def writing(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Run a write inside one IMMEDIATE transaction; roll back on any failure."""
        with self._lock:
            conn = self._require_open(operation)
            try:
                conn.execute("BEGIN IMMEDIATE;")
            except sqlite3.Error as exc:
                logger.error("storage_write_failed", operation=operation, error=str(exc))
                raise StorageWriteFailed(operation, f"{operation}: {exc}") from exc
            try:
                yield conn
                conn.execute("COMMIT;")
            except sqlite3.Error as exc:
                _rollback_quietly(conn)
                logger.error("storage_write_failed", operation=operation, error=str(exc))
                raise StorageWriteFailed(operation, f"{operation}: {exc}") from exc
            except BaseException:
                _rollback_quietly(conn)
                raise


def _rollback_quietly(conn: sqlite3.Connection) -> None:
    # ROLLBACK 自体の失敗は元の例外を優先して握りつぶす
    try:
        conn.execute("ROLLBACK;")
    except sqlite3.Error:
        pass
