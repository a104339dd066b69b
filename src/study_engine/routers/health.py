from fastapi import APIRouter

router = APIRouter()


@router.get("/healthz")
def health_check() -> dict[str, str]:
    """Simple health check endpoint.

    ライブネス確認用の簡易エンドポイント。
    """
    return {"status": "ok"}
