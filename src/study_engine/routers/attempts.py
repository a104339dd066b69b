from fastapi import APIRouter, Depends, HTTPException, Query

from ..config import settings
from ..dependencies import get_store
from ..models import (
    Attempt,
    AttemptListResponse,
    RecordAttemptResponse,
    StoredAttempt,
)
from ..recording import record_attempt
from ..store import StudyStore

router = APIRouter(tags=["attempts"])


@router.post(
    "",
    response_model=RecordAttemptResponse,
    summary="採点結果を記録して復習スケジュールを更新",
)
def create_attempt(attempt: Attempt, store: StudyStore = Depends(get_store)) -> RecordAttemptResponse:
    """Append a graded attempt and reschedule each graded item.

    - 回答履歴へ追記（id を採番）
    - result_state の各設問について quality を算出し、カードを更新
    """
    outcome = record_attempt(store, attempt)
    return RecordAttemptResponse(id=outcome.attempt_id, updated_cards=outcome.cards)


@router.get("", response_model=AttemptListResponse, summary="回答履歴（新しい順）")
def list_attempts(
    limit: int | None = Query(default=None, ge=1, le=1000),
    quiz_id: str | None = Query(default=None),
    store: StudyStore = Depends(get_store),
) -> AttemptListResponse:
    items = store.attempts.list(limit or settings.history_limit, quiz_id=quiz_id)
    return AttemptListResponse(items=items)


@router.get("/{attempt_id}", response_model=StoredAttempt, summary="回答履歴を1件取得（復元用）")
def get_attempt(attempt_id: int, store: StudyStore = Depends(get_store)) -> StoredAttempt:
    attempt = store.attempts.get(attempt_id)
    if attempt is None:
        raise HTTPException(status_code=404, detail="attempt not found")
    return attempt


@router.delete("", summary="回答履歴を全削除（取り消し不可）")
def clear_attempts(store: StudyStore = Depends(get_store)) -> dict[str, bool]:
    store.attempts.clear()
    return {"ok": True}
