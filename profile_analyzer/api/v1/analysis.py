from fastapi import APIRouter, Header, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from profile_analyzer.core.errors import StorageUnavailableError, TransientIOError
from profile_analyzer.core.rate_limit import rate_limit
from profile_analyzer.core.security import check_api_key
from profile_analyzer.schemas.analysis import AnalyzeRequest
from profile_analyzer.services.analysis_service import get_cache_store, stream_analysis

router = APIRouter()


@router.post("/analysis/stream")
@rate_limit()
async def analysis_stream(
    request: Request,
    payload: AnalyzeRequest,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    _ = request
    check_api_key(x_api_key)
    gen = stream_analysis(payload)

    return StreamingResponse(
        gen,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/analysis/cache/{profile_id}")
async def get_cached_analysis(
    profile_id: str,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    check_api_key(x_api_key)
    try:
        entry = await get_cache_store().get(profile_id.lower())
    except (StorageUnavailableError, TransientIOError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No cached analysis for this profile.")
    return entry.model_dump(mode="json")


@router.delete("/analysis/cache/{profile_id}")
async def delete_cached_analysis(
    profile_id: str,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    check_api_key(x_api_key)
    try:
        await get_cache_store().invalidate(profile_id.lower())
    except (StorageUnavailableError, TransientIOError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"profile_id": profile_id.lower(), "deleted": True}


@router.delete("/analysis/cache")
async def clear_cached_analyses(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    check_api_key(x_api_key)
    try:
        removed = await get_cache_store().clear_all()
    except (StorageUnavailableError, TransientIOError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"deleted": removed}
