from __future__ import annotations

from typing import List, Optional

from .cards import CardStore
from .config import settings
from .models import Card, DueCard
from .scheduler import now_ms, round_half_away


MINUTE_MS = 60_000


def due_label(due_ts: int, now: Optional[int] = None) -> str:
    """Describe when a card is due relative to `now`.

    - 期限切れ: "overdue by N minutes"（切り捨て）
    - 60 分未満: "due in N minutes"
    - 48 時間未満: "due in N hours"
    - それ以降: "due in N days"
    """
    ts = now_ms() if now is None else int(now)
    if due_ts <= ts:
        return f"overdue by {(ts - due_ts) // MINUTE_MS} minutes"
    mins = round_half_away((due_ts - ts) / MINUTE_MS)
    if mins < 60:
        return f"due in {mins} minutes"
    hours = round_half_away(mins / 60)
    if hours < 48:
        return f"due in {hours} hours"
    return f"due in {round_half_away(hours / 24)} days"


class DueQuery:
    """Read-only view over the card store producing today's review queue."""

    def __init__(
        self,
        cards: CardStore,
        default_limit: Optional[int] = None,
        most_overdue_first: Optional[bool] = None,
    ) -> None:
        self._cards = cards
        self.default_limit = settings.due_list_limit if default_limit is None else default_limit
        self.most_overdue_first = (
            settings.due_most_overdue_first if most_overdue_first is None else most_overdue_first
        )

    def list_due(
        self,
        limit: Optional[int] = None,
        as_of: Optional[int] = None,
        *,
        quiz_id: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> List[Card]:
        return self._cards.list_due(
            self.default_limit if limit is None else limit,
            now_ms() if as_of is None else as_of,
            quiz_id=quiz_id,
            tag=tag,
            most_overdue_first=self.most_overdue_first,
        )

    def list_labelled(
        self,
        limit: Optional[int] = None,
        as_of: Optional[int] = None,
        *,
        quiz_id: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> List[DueCard]:
        ts = now_ms() if as_of is None else as_of
        cards = self.list_due(limit, ts, quiz_id=quiz_id, tag=tag)
        return [
            DueCard(**card.model_dump(), due_label=due_label(card.due_ts, ts))
            for card in cards
        ]
