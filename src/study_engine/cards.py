from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional, Tuple

from .logging import logger
from .models import Card
from .stream import QueryStream

if TYPE_CHECKING:  # pragma: no cover
    from .store import StudyStore


_SELECT_CARD = """
    SELECT key, quiz_id, item_id, tag, reps, interval_days, ease,
           last_quality, last_ts, due_ts
    FROM cards
"""


def _row_to_card(row: sqlite3.Row) -> Card:
    return Card(
        key=row["key"],
        quiz_id=row["quiz_id"],
        item_id=row["item_id"],
        tag=row["tag"],
        reps=int(row["reps"]),
        interval_days=float(row["interval_days"]),
        ease=float(row["ease"]),
        last_quality=None if row["last_quality"] is None else int(row["last_quality"]),
        last_ts=None if row["last_ts"] is None else int(row["last_ts"]),
        due_ts=int(row["due_ts"]),
    )


def _utc_day_start_ms(now: int) -> int:
    dt = datetime.fromtimestamp(now / 1000, tz=timezone.utc)
    start = datetime(dt.year, dt.month, dt.day, tzinfo=timezone.utc)
    return int(start.timestamp() * 1000)


class CardStore:
    """Per-item scheduling state keyed by `quiz_id::item_id`.

    - put: キー単位の完全置換（部分マージはしない）
    - list_due: due_ts <= as_of のカードを due_ts 降順（期限切れが短いものが先）で返す。
      most_overdue_first=True で昇順（期限切れが長いものが先）に切り替える
    """

    def __init__(self, store: "StudyStore") -> None:
        self._store = store

    def get(self, key: str) -> Optional[Card]:
        with self._store.reading("cards.get") as conn:
            row = conn.execute(f"{_SELECT_CARD} WHERE key = ?;", (key,)).fetchone()
        return None if row is None else _row_to_card(row)

    def put(self, card: Card) -> None:
        with self._store.writing("cards.put") as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO cards(
                    key, quiz_id, item_id, tag, reps, interval_days, ease,
                    last_quality, last_ts, due_ts
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    card.key,
                    card.quiz_id,
                    card.item_id,
                    card.tag,
                    card.reps,
                    card.interval_days,
                    card.ease,
                    card.last_quality,
                    card.last_ts,
                    card.due_ts,
                ),
            )
        logger.debug("card_put", key=card.key, due_ts=card.due_ts)

    @staticmethod
    def _due_query(
        as_of: int,
        quiz_id: Optional[str],
        tag: Optional[str],
        most_overdue_first: bool,
    ) -> Tuple[str, tuple]:
        clauses = ["due_ts <= ?"]
        params: list = [int(as_of)]
        if quiz_id is not None:
            clauses.append("quiz_id = ?")
            params.append(quiz_id)
        if tag is not None:
            clauses.append("tag = ?")
            params.append(tag)
        direction = "ASC" if most_overdue_first else "DESC"
        sql = (
            f"{_SELECT_CARD} WHERE {' AND '.join(clauses)} "
            f"ORDER BY due_ts {direction}, key {direction}"
        )
        return sql, tuple(params)

    def iter_due(
        self,
        as_of: int,
        *,
        quiz_id: Optional[str] = None,
        tag: Optional[str] = None,
        most_overdue_first: bool = False,
    ) -> QueryStream[Card]:
        sql, params = self._due_query(as_of, quiz_id, tag, most_overdue_first)
        return QueryStream(self._store, "cards.list_due", sql, params, _row_to_card)

    def list_due(
        self,
        limit: int,
        as_of: int,
        *,
        quiz_id: Optional[str] = None,
        tag: Optional[str] = None,
        most_overdue_first: bool = False,
    ) -> List[Card]:
        """Return at most `limit` cards with due_ts <= as_of."""
        if limit <= 0:
            return []
        sql, params = self._due_query(as_of, quiz_id, tag, most_overdue_first)
        with self._store.reading("cards.list_due") as conn:
            rows = conn.execute(f"{sql} LIMIT ?;", (*params, int(limit))).fetchall()
        return [_row_to_card(row) for row in rows]

    def stats(self, now: int) -> Tuple[int, int]:
        """Return (due_now_count, reviewed_today_count).

        - due_now_count: now 時点で due のカード件数
        - reviewed_today_count: 当日 00:00 UTC 以降に更新されたカード件数
        """
        with self._store.reading("cards.stats") as conn:
            due_now = conn.execute(
                "SELECT COUNT(1) AS c FROM cards WHERE due_ts <= ?;", (int(now),)
            ).fetchone()["c"]
            reviewed_today = conn.execute(
                "SELECT COUNT(1) AS c FROM cards WHERE last_ts >= ?;",
                (_utc_day_start_ms(int(now)),),
            ).fetchone()["c"]
        return int(due_now), int(reviewed_today)

    def clear(self) -> None:
        with self._store.writing("cards.clear") as conn:
            deleted = conn.execute("DELETE FROM cards;").rowcount
        logger.warning("cards_cleared", deleted=deleted)
