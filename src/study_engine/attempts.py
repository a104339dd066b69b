from __future__ import annotations

import json
import sqlite3
from typing import TYPE_CHECKING, List, Optional

from .logging import logger
from .models import Attempt, StoredAttempt
from .stream import QueryStream

if TYPE_CHECKING:  # pragma: no cover
    from .store import StudyStore


_SELECT_ATTEMPT = """
    SELECT id, ts, quiz_id, quiz_title, quiz_source_url, total, correct,
           score_sum, score_items, item_meta, user_answers, result_state
    FROM attempts
"""


def _loads(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


def _row_to_attempt(row: sqlite3.Row) -> StoredAttempt:
    score_sum = row["score_sum"]
    if isinstance(score_sum, float) and score_sum.is_integer():
        score_sum = int(score_sum)
    return StoredAttempt.model_validate(
        {
            "id": int(row["id"]),
            "timestamp": int(row["ts"]),
            "quiz_id": row["quiz_id"],
            "quiz_title": row["quiz_title"],
            "quiz_source_url": row["quiz_source_url"],
            "total": int(row["total"]),
            "correct": int(row["correct"]),
            "score_sum": score_sum,
            "score_items": int(row["score_items"]),
            "item_meta": _loads(row["item_meta"]),
            "user_answers": _loads(row["user_answers"]),
            "result_state": _loads(row["result_state"]),
        }
    )


class AttemptLog:
    """Append-only log of graded attempts.

    - append: 単調増加の id を採番して保存（AUTOINCREMENT のため clear 後も再利用されない）
    - list / iter_recent: ts 降順、同一 ts は id 降順（後から追記したものが先）
    - clear: 全件削除（取り消し不可）
    """

    def __init__(self, store: "StudyStore") -> None:
        self._store = store

    def append(self, attempt: Attempt) -> int:
        data = attempt.model_dump(mode="json", exclude={"id"})
        with self._store.writing("attempts.append") as conn:
            cur = conn.execute(
                """
                INSERT INTO attempts(
                    ts, quiz_id, quiz_title, quiz_source_url, total, correct,
                    score_sum, score_items, item_meta, user_answers, result_state
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    data["timestamp"],
                    data["quiz_id"],
                    data["quiz_title"],
                    data["quiz_source_url"],
                    data["total"],
                    data["correct"],
                    data["score_sum"],
                    data["score_items"],
                    json.dumps(data["item_meta"], ensure_ascii=False),
                    json.dumps(data["user_answers"], ensure_ascii=False),
                    json.dumps(data["result_state"], ensure_ascii=False),
                ),
            )
            attempt_id = int(cur.lastrowid)
        logger.info(
            "attempt_appended",
            attempt_id=attempt_id,
            quiz_id=attempt.quiz_id,
            items=len(attempt.result_state),
        )
        return attempt_id

    def iter_recent(self, quiz_id: Optional[str] = None) -> QueryStream[StoredAttempt]:
        """Stream attempts newest first, optionally restricted to one quiz."""
        if quiz_id is None:
            sql = f"{_SELECT_ATTEMPT} ORDER BY ts DESC, id DESC"
            params: tuple = ()
        else:
            sql = f"{_SELECT_ATTEMPT} WHERE quiz_id = ? ORDER BY ts DESC, id DESC"
            params = (quiz_id,)
        return QueryStream(self._store, "attempts.list", sql, params, _row_to_attempt)

    def list(self, limit: int = 50, quiz_id: Optional[str] = None) -> List[StoredAttempt]:
        """Return the most recent `limit` attempts, newest first."""
        if limit <= 0:
            return []
        where = "" if quiz_id is None else "WHERE quiz_id = ?"
        params: tuple = () if quiz_id is None else (quiz_id,)
        with self._store.reading("attempts.list") as conn:
            cur = conn.execute(
                f"{_SELECT_ATTEMPT} {where} ORDER BY ts DESC, id DESC LIMIT ?;",
                (*params, int(limit)),
            )
            rows = cur.fetchall()
        return [_row_to_attempt(row) for row in rows]

    def get(self, attempt_id: int) -> Optional[StoredAttempt]:
        with self._store.reading("attempts.get") as conn:
            row = conn.execute(f"{_SELECT_ATTEMPT} WHERE id = ?;", (int(attempt_id),)).fetchone()
        return None if row is None else _row_to_attempt(row)

    def count(self) -> int:
        with self._store.reading("attempts.count") as conn:
            row = conn.execute("SELECT COUNT(1) AS c FROM attempts;").fetchone()
        return int(row["c"])

    def clear(self) -> None:
        with self._store.writing("attempts.clear") as conn:
            cur = conn.execute("DELETE FROM attempts;")
            deleted = cur.rowcount
        logger.warning("attempts_cleared", deleted=deleted)
