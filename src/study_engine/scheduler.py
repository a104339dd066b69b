"""SM-2 style scheduling for quiz items.

Quality ratings consumed here (0-5):
- 5: correct, or a numeric score of 5
- 4: numeric score of at least 4
- 2: incorrect, or a numeric score below 4

A quality below 3 is a lapse: the streak resets and the item comes back in
about half an hour. Otherwise the interval grows 1 day, 3 days, then by the
ease factor. Ease moves by the classic SM-2 delta and is clamped to
[1.3, 2.7].
"""

from __future__ import annotations

import math
import time
from typing import Optional

from .models import UNTAGGED, Card, ItemResult


DAY_MS = 86_400_000
DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MAX_EASE = 2.7
LAPSE_INTERVAL_DAYS = 0.02  # ~28.8 分
KEY_SEPARATOR = "::"


def now_ms() -> int:
    return int(time.time() * 1000)


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (built-in round() is banker's)."""
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def card_key(quiz_id: str, item_id: str) -> str:
    return f"{quiz_id}{KEY_SEPARATOR}{item_id}"


def derive_quality(result: Optional[ItemResult]) -> int:
    """Map an item's grading result to a 0-5 quality.

    数値スコア（0–5）がある設問は 5 / 4 / それ以外(2) の 3 段階、
    ない設問は正誤のみで 5 / 2 に振り分ける。
    """
    if result is None:
        return 2
    if result.score is not None:
        if result.score >= 5:
            return 5
        if result.score >= 4:
            return 4
        return 2
    return 5 if result.correct else 2


def new_card(quiz_id: str, item_id: str, tag: str = UNTAGGED, now: Optional[int] = None) -> Card:
    """Build the default card for an item seen for the first time (due immediately)."""
    ts = now_ms() if now is None else int(now)
    return Card(
        key=card_key(quiz_id, item_id),
        quiz_id=quiz_id,
        item_id=item_id,
        tag=tag or UNTAGGED,
        reps=0,
        interval_days=0.0,
        ease=DEFAULT_EASE,
        due_ts=ts,
    )


def update(card: Card, quality: int, now: Optional[int] = None, tag: Optional[str] = None) -> Card:
    """Apply one quality signal and return the rescheduled card.

    入力カードは変更しない。quality の範囲チェックは行わず、0–5 の外でも同じ式で計算する。
    interval の伸長には今回の ease 更新前の値を使う。
    """
    ts = now_ms() if now is None else int(now)
    reps = card.reps
    interval_days = card.interval_days
    ease = card.ease

    if quality < 3:
        reps = 0
        interval_days = LAPSE_INTERVAL_DAYS
    else:
        reps += 1
        if reps == 1:
            interval_days = 1.0
        elif reps == 2:
            interval_days = 3.0
        else:
            interval_days = interval_days * ease

    miss = 5 - quality
    ease = clamp(ease + (0.1 - miss * (0.08 + miss * 0.02)), MIN_EASE, MAX_EASE)

    return card.model_copy(
        update={
            "tag": card.tag if tag is None else (tag or UNTAGGED),
            "reps": reps,
            "interval_days": interval_days,
            "ease": ease,
            "last_quality": quality,
            "last_ts": ts,
            "due_ts": ts + round_half_away(interval_days * DAY_MS),
        }
    )
