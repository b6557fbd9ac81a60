from fastapi import APIRouter

from profile_analyzer.core.scoring import get_scoring_value

router = APIRouter()


@router.get("/health", summary="Health Check", description="Check the health status of the application.")
async def health_check():
    return {"status": "healthy", "sections": len(get_scoring_value("analysis.order", []))}
