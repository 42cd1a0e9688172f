"""Health check endpoint."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Return service health, including database reachability."""
    try:
        async with request.app.state.db_session_factory() as session:
            await session.execute(text("SELECT 1"))
        database = "ok"
    except Exception as exc:
        database = f"error: {exc}"
    ok = database == "ok"
    return JSONResponse(
        status_code=200 if ok else 503,
        content={
            "status": "healthy" if ok else "unhealthy",
            "service": "agencyflow-api",
            "checks": {"database": database},
        },
    )
