from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, List, Mapping, Optional

from .errors import StudyStoreError
from .logging import logger
from .models import UNTAGGED, Attempt, AttemptSummary, Card, ItemResult
from .scheduler import card_key, derive_quality, new_card, update

if TYPE_CHECKING:  # pragma: no cover
    from .store import StudyStore


_SUMMARY_FIELDS = frozenset({"total", "correct", "score_sum", "score_items"})


@dataclass
class RecordOutcome:
    attempt_id: int
    cards: List[Card] = field(default_factory=list)


def summarize(
    item_ids: Iterable[str],
    result_state: Mapping[str, Optional[ItemResult]],
) -> AttemptSummary:
    """Build the score summary stored with an attempt.

    出題された全設問を total に数え、結果のある設問だけ正解数とスコア合計に反映する。
    """
    summary = AttemptSummary()
    for item_id in item_ids:
        summary.total += 1
        result = result_state.get(item_id)
        if result is None:
            continue
        if result.correct:
            summary.correct += 1
        if result.score is not None:
            summary.score_sum += result.score
            summary.score_items += 1
    return summary


def _item_ids(attempt: Attempt) -> List[str]:
    # 出題順: item_meta → user_answers → result_state の順に初出のキーを並べる
    return list(dict.fromkeys([*attempt.item_meta, *attempt.user_answers, *attempt.result_state]))


def record_attempt(store: "StudyStore", attempt: Attempt, now: Optional[int] = None) -> RecordOutcome:
    """Append a graded attempt, then reschedule the card of every graded item.

    total/correct/score_sum/score_items がいずれも未指定の場合は summarize で補完してから保存する。
    attempts への追記とカード更新は別トランザクション。途中のカード更新が失敗しても
    それ以前に反映済みのカードは巻き戻さず、例外をそのまま呼び出し側へ返す。
    """
    if not attempt.model_fields_set & _SUMMARY_FIELDS:
        summary = summarize(_item_ids(attempt), attempt.result_state)
        attempt = attempt.model_copy(update=summary.model_dump())
    ts = attempt.timestamp if now is None else int(now)
    attempt_id = store.attempts.append(attempt)
    outcome = RecordOutcome(attempt_id=attempt_id)

    for item_id, result in attempt.result_state.items():
        if result is None:
            continue
        meta = attempt.item_meta.get(item_id)
        tag = meta.first_tag if meta is not None else UNTAGGED
        quality = derive_quality(result)
        key = card_key(attempt.quiz_id, item_id)
        try:
            card = store.cards.get(key)
            if card is None:
                card = new_card(attempt.quiz_id, item_id, tag, ts)
            updated = update(card, quality, ts, tag=tag)
            store.cards.put(updated)
        except StudyStoreError as exc:
            logger.error(
                "card_update_failed",
                attempt_id=attempt_id,
                key=key,
                applied=len(outcome.cards),
                error=str(exc),
            )
            raise
        outcome.cards.append(updated)
        logger.info(
            "card_updated",
            key=key,
            quality=quality,
            reps=updated.reps,
            interval_days=updated.interval_days,
            due_ts=updated.due_ts,
        )

    logger.info("attempt_recorded", attempt_id=attempt_id, cards=len(outcome.cards))
    return outcome
