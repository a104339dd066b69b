from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


UNTAGGED = "(untagged)"
UNKNOWN_QUIZ = "unknown"


class _CamelModel(BaseModel):
    """Base model accepting both snake_case and the camelCase keys of the quiz UI."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ItemMeta(_CamelModel):
    """Per-item metadata captured at grading time."""

    tags: list[str] = Field(default_factory=list)
    type: str = ""

    @field_validator("tags", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def first_tag(self) -> str:
        return self.tags[0] if self.tags else UNTAGGED


class ItemResult(_CamelModel):
    """Grading result for one item.

    score は英作文のように 0–5 の数値採点がある設問のみ設定される。
    """

    correct: bool = False
    message: str = ""
    explanation: str | None = None
    score: int | float | None = None
    feedback: list[str] = Field(default_factory=list)


class Attempt(_CamelModel):
    """A graded quiz attempt as submitted by the grading UI (before an id is assigned)."""

    timestamp: int = Field(validation_alias=AliasChoices("timestamp", "ts"))
    quiz_id: str = UNKNOWN_QUIZ
    quiz_title: str = ""
    quiz_source_url: str = ""
    total: int = Field(default=0, ge=0)
    correct: int = Field(default=0, ge=0)
    score_sum: int | float = 0
    score_items: int = 0
    item_meta: dict[str, ItemMeta] = Field(default_factory=dict)
    user_answers: dict[str, Any] = Field(default_factory=dict)
    result_state: dict[str, ItemResult | None] = Field(default_factory=dict)

    @field_validator("quiz_id", mode="before")
    @classmethod
    def _default_quiz_id(cls, v: Any) -> Any:
        return v or UNKNOWN_QUIZ

    @field_validator("item_meta", "user_answers", "result_state", mode="before")
    @classmethod
    def _none_as_empty_map(cls, v: Any) -> Any:
        return {} if v is None else v

    @model_validator(mode="after")
    def _correct_le_total(self) -> "Attempt":
        if self.correct > self.total:
            raise ValueError("correct must be <= total")
        return self


class StoredAttempt(Attempt):
    """An attempt as persisted in the log. Never mutated after append."""

    model_config = ConfigDict(frozen=True)

    id: int


class Card(_CamelModel):
    """Scheduling state for one (quiz, item) pair."""

    key: str
    quiz_id: str
    item_id: str
    tag: str = UNTAGGED
    reps: int = 0
    interval_days: float = 0.0
    ease: float = 2.5
    last_quality: int | None = None
    last_ts: int | None = None
    due_ts: int


class DueCard(Card):
    """A due card decorated with a human-readable due label."""

    due_label: str


class AttemptSummary(_CamelModel):
    total: int = 0
    correct: int = 0
    score_sum: int | float = 0
    score_items: int = 0


class ItemStat(_CamelModel):
    key: str
    quiz_id: str
    item_id: str
    attempts: int
    correct: int
    accuracy: float


class QuizStat(_CamelModel):
    quiz_id: str
    total: int
    correct: int
    accuracy: float


class TagStat(_CamelModel):
    tag: str
    attempts: int
    correct: int
    accuracy: float


class WeaknessReport(_CamelModel):
    """Aggregate accuracy rankings, weakest first.

    苦手分析の結果。worst_items / worst_tags は上位 N 件、quizzes は全件。
    """

    worst_items: list[ItemStat] = Field(default_factory=list)
    quizzes: list[QuizStat] = Field(default_factory=list)
    worst_tags: list[TagStat] = Field(default_factory=list)


# --- HTTP payloads ---


class RecordAttemptResponse(_CamelModel):
    id: int
    updated_cards: list[Card] = Field(default_factory=list)


class AttemptListResponse(_CamelModel):
    items: list[StoredAttempt] = Field(default_factory=list)


class DueCardsResponse(_CamelModel):
    """Response model for the review queue.

    現時点で復習すべきカード（ラベル付き）
    """

    items: list[DueCard] = Field(default_factory=list)


class ReviewStatsResponse(_CamelModel):
    """進捗の見える化 用の統計レスポンス。

    - due_now: 現在時点で出題すべき件数
    - reviewed_today: 今日更新されたカード件数
    """

    due_now: int
    reviewed_today: int
