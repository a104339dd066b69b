from __future__ import annotations

import sqlite3
from itertools import islice
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterator, List, Sequence, TypeVar

if TYPE_CHECKING:  # pragma: no cover
    from .store import StudyStore


T = TypeVar("T")


class QueryStream(Generic[T]):
    """Lazy, finite, restartable sequence over the rows of one SELECT.

    イテレートするたびにクエリを再実行し、行を batch_size 件ずつ取り出して
    row_mapper で変換する。1 回のイテレーションは専用の読み取り接続上の
    スナップショットを読むため、途中で追記や削除が確定しても結果は変わらない。
    """

    def __init__(
        self,
        store: "StudyStore",
        operation: str,
        sql: str,
        params: Sequence[Any],
        row_mapper: Callable[[sqlite3.Row], T],
        batch_size: int = 64,
    ) -> None:
        self._store = store
        self._operation = operation
        self._sql = sql
        self._params = tuple(params)
        self._row_mapper = row_mapper
        self._batch_size = max(1, int(batch_size))

    def __iter__(self) -> Iterator[T]:
        if self._store.is_memory:
            # :memory: は別接続から見えないため、ロック下で全件を確定させる
            with self._store.reading(self._operation) as conn:
                rows = conn.execute(self._sql, self._params).fetchall()
            for row in rows:
                yield self._row_mapper(row)
            return

        with self._store.snapshot(self._operation) as conn:
            cur = conn.execute(self._sql, self._params)
            while True:
                rows = cur.fetchmany(self._batch_size)
                if not rows:
                    return
                for row in rows:
                    yield self._row_mapper(row)

    def take(self, limit: int) -> List[T]:
        """Return at most `limit` items from a fresh iteration."""
        if limit <= 0:
            return []
        return list(islice(self, limit))
