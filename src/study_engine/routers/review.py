from fastapi import APIRouter, Depends, Query

from ..dependencies import get_store
from ..due import DueQuery
from ..models import DueCardsResponse, ReviewStatsResponse
from ..scheduler import now_ms
from ..store import StudyStore

router = APIRouter(tags=["review"])


@router.get("/due", response_model=DueCardsResponse, summary="復習対象カードを取得")
def review_due(
    limit: int | None = Query(default=None, ge=1, le=500),
    quiz_id: str | None = Query(default=None),
    tag: str | None = Query(default=None),
    store: StudyStore = Depends(get_store),
) -> DueCardsResponse:
    """Return cards due now, each with a due label.

    quiz_id / tag を指定するとそのクイズ・タグのカードに絞り込む。
    """
    query = DueQuery(store.cards)
    items = query.list_labelled(limit, now_ms(), quiz_id=quiz_id, tag=tag)
    return DueCardsResponse(items=items)


@router.get("/stats", response_model=ReviewStatsResponse, summary="進捗統計（残数・今日の復習数）")
def review_stats(store: StudyStore = Depends(get_store)) -> ReviewStatsResponse:
    due_now, reviewed_today = store.cards.stats(now_ms())
    return ReviewStatsResponse(due_now=due_now, reviewed_today=reviewed_today)
