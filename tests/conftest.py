"""Shared fixtures: a fresh file-backed study store per test."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator

import pytest

from study_engine.models import Attempt
from study_engine.store import StudyStore


BASE_TS = 1_700_000_000_000


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "study.sqlite3")


@pytest.fixture()
def store(db_path: str) -> Iterator[StudyStore]:
    with StudyStore(db_path) as opened:
        yield opened


def _make_attempt(
    ts: int = BASE_TS,
    quiz_id: str = "Q1",
    results: dict[str, Any] | None = None,
    tags: dict[str, list[str]] | None = None,
    **extra: Any,
) -> Attempt:
    """Build an attempt from `{item_id: correct_bool | result_dict}` shorthand."""

    result_state: dict[str, Any] = {}
    for item_id, value in (results or {}).items():
        if isinstance(value, bool):
            result_state[item_id] = {"correct": value, "message": "ok" if value else "ng"}
        else:
            result_state[item_id] = value
    item_meta = {item_id: {"tags": t, "type": "mcq"} for item_id, t in (tags or {}).items()}
    correct = sum(1 for r in result_state.values() if r and r.get("correct"))
    payload: dict[str, Any] = {
        "ts": ts,
        "quizId": quiz_id,
        "quizTitle": f"Quiz {quiz_id}",
        "total": len(result_state),
        "correct": correct,
        "itemMeta": item_meta,
        "resultState": result_state,
    }
    payload.update(extra)
    return Attempt.model_validate(payload)

@pytest.fixture()
def make_attempt():
    return _make_attempt

