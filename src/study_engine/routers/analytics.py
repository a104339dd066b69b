from fastapi import APIRouter, Depends, Query

from ..analytics import analyze
from ..dependencies import get_store
from ..models import WeaknessReport
from ..store import StudyStore

router = APIRouter(tags=["analytics"])


@router.get("/weakness", response_model=WeaknessReport, summary="苦手分析（設問・クイズ・タグ別の正答率）")
def weakness(
    limit: int | None = Query(default=None, ge=1),
    store: StudyStore = Depends(get_store),
) -> WeaknessReport:
    """Analyse the most recent `limit` attempts (all attempts when omitted)."""
    stream = store.attempts.iter_recent()
    attempts = stream.take(limit) if limit is not None else stream
    return analyze(attempts)
