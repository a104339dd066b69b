from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from .config import settings
from .models import UNKNOWN_QUIZ, UNTAGGED, Attempt, ItemStat, QuizStat, TagStat, WeaknessReport
from .scheduler import card_key


@dataclass
class _Tally:
    attempts: int = 0
    correct: int = 0

    def add(self, ok: bool) -> None:
        self.attempts += 1
        if ok:
            self.correct += 1

    @property
    def accuracy(self) -> float:
        return self.correct / self.attempts if self.attempts else 0.0


def analyze(attempts: Iterable[Attempt], top_n: Optional[int] = None) -> WeaknessReport:
    """Rank items, quizzes and tags by accuracy, weakest first.

    各回答の result_state を item_meta と突き合わせて集計する。
    - 設問単位: `quiz_id::item_id` ごとの出題数/正解数（上位 top_n 件）
    - クイズ単位: 全件（切り詰めない）
    - タグ単位: 設問の先頭タグのみを数える（タグなしは "(untagged)"、上位 top_n 件）
    同率は初出順を保つ（安定ソート）。result_state が空の回答はクイズ単位に total=0 で現れるだけ。
    """
    limit = settings.weakness_top_n if top_n is None else top_n

    items: Dict[Tuple[str, str], _Tally] = {}
    quizzes: Dict[str, _Tally] = {}
    tags: Dict[str, _Tally] = {}

    for attempt in attempts:
        quiz_id = attempt.quiz_id or UNKNOWN_QUIZ
        quiz = quizzes.setdefault(quiz_id, _Tally())
        for item_id, result in attempt.result_state.items():
            ok = result is not None and result.correct
            quiz.add(ok)
            items.setdefault((quiz_id, item_id), _Tally()).add(ok)
            meta = attempt.item_meta.get(item_id)
            tag = meta.first_tag if meta is not None else UNTAGGED
            tags.setdefault(tag, _Tally()).add(ok)

    worst_items = sorted(
        (
            ItemStat(
                key=card_key(quiz_id, item_id),
                quiz_id=quiz_id,
                item_id=item_id,
                attempts=t.attempts,
                correct=t.correct,
                accuracy=t.accuracy,
            )
            for (quiz_id, item_id), t in items.items()
        ),
        key=lambda s: s.accuracy,
    )
    quiz_stats = sorted(
        (
            QuizStat(quiz_id=quiz_id, total=t.attempts, correct=t.correct, accuracy=t.accuracy)
            for quiz_id, t in quizzes.items()
        ),
        key=lambda s: s.accuracy,
    )
    worst_tags = sorted(
        (
            TagStat(tag=tag, attempts=t.attempts, correct=t.correct, accuracy=t.accuracy)
            for tag, t in tags.items()
        ),
        key=lambda s: s.accuracy,
    )
    return WeaknessReport(
        worst_items=worst_items[:limit],
        quizzes=quiz_stats,
        worst_tags=worst_tags[:limit],
    )
