import pytest

from study_engine.errors import StorageWriteFailed
from study_engine.models import Attempt, ItemResult
from study_engine.recording import record_attempt, summarize
from study_engine.scheduler import DAY_MS

T = 1_700_000_000_000


def test_summarize_counts_every_item_and_scored_results():
    summary = summarize(
        ["a", "b", "c"],
        {
            "a": ItemResult(correct=True),
            "b": ItemResult(correct=False, score=3),
        },
    )
    assert summary.model_dump() == {"total": 3, "correct": 1, "score_sum": 3, "score_items": 1}


def test_record_attempt_creates_cards(store, make_attempt):
    attempt = make_attempt(
        ts=T,
        results={
            "a": True,
            "b": {"correct": True, "message": "採点：4/5", "score": 4},
            "c": False,
        },
        tags={"a": ["grammar", "past"], "b": ["writing"]},
    )
    outcome = record_attempt(store, attempt)

    assert store.attempts.get(outcome.attempt_id) is not None
    assert [c.key for c in outcome.cards] == ["Q1::a", "Q1::b", "Q1::c"]

    a = store.cards.get("Q1::a")
    assert (a.reps, a.interval_days, a.due_ts, a.tag) == (1, 1.0, T + DAY_MS, "grammar")
    b = store.cards.get("Q1::b")
    assert (b.last_quality, b.reps, b.tag) == (4, 1, "writing")
    assert b.ease == pytest.approx(2.5)
    c = store.cards.get("Q1::c")
    assert (c.reps, c.interval_days, c.due_ts, c.tag) == (0, 0.02, T + 1_728_000, "(untagged)")
    assert c.ease == pytest.approx(2.18)


def test_record_attempt_updates_existing_cards_and_refreshes_tag(store, make_attempt):
    record_attempt(store, make_attempt(ts=T, results={"a": True}, tags={"a": ["grammar"]}))
    record_attempt(store, make_attempt(ts=T + DAY_MS, results={"a": True}, tags={"a": ["tense"]}))

    card = store.cards.get("Q1::a")
    assert card.reps == 2
    assert card.interval_days == 3
    assert card.due_ts == T + DAY_MS + 3 * DAY_MS
    assert card.tag == "tense"


def test_record_attempt_skips_items_without_result(store, make_attempt):
    attempt = make_attempt(ts=T, results={"a": True})
    attempt.result_state["b"] = None
    outcome = record_attempt(store, attempt)
    assert [c.item_id for c in outcome.cards] == ["a"]
    assert store.cards.get("Q1::b") is None


def test_record_attempt_explicit_now_overrides_timestamp(store, make_attempt):
    record_attempt(store, make_attempt(ts=T, results={"a": True}), now=T + 5)
    assert store.cards.get("Q1::a").last_ts == T + 5


def test_failed_put_keeps_log_and_earlier_cards(store, make_attempt, monkeypatch):
    real_put = store.cards.put
    calls = []

    def flaky_put(card):
        calls.append(card.key)
        if len(calls) == 2:
            raise StorageWriteFailed("cards.put", "disk full")
        real_put(card)

    monkeypatch.setattr(store.cards, "put", flaky_put)
    attempt = make_attempt(ts=T, results={"a": True, "b": True, "c": True})

    with pytest.raises(StorageWriteFailed):
        record_attempt(store, attempt)

    assert store.attempts.count() == 1
    assert store.cards.get("Q1::a") is not None
    assert store.cards.get("Q1::b") is None
    assert store.cards.get("Q1::c") is None


def test_record_attempt_fills_missing_summary(store):
    attempt = Attempt.model_validate(
        {
            "ts": T,
            "quizId": "Q1",
            "itemMeta": {"a": {"tags": []}, "b": {"tags": []}, "c": {"tags": []}},
            "resultState": {
                "a": {"correct": True, "score": 5},
                "b": {"correct": False, "score": 1.5},
            },
        }
    )
    outcome = record_attempt(store, attempt)

    stored = store.attempts.get(outcome.attempt_id)
    assert (stored.total, stored.correct, stored.score_sum, stored.score_items) == (3, 1, 6.5, 2)


def test_record_attempt_keeps_summary_sent_by_ui(store, make_attempt):
    attempt = make_attempt(ts=T, results={"a": True}, total=5, correct=4, scoreSum=9, scoreItems=2)
    outcome = record_attempt(store, attempt)

    stored = store.attempts.get(outcome.attempt_id)
    assert (stored.total, stored.correct, stored.score_sum, stored.score_items) == (5, 4, 9, 2)
