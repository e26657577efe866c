from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from docsite.database.health import check_connection_health, get_pool_stats

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    engine = request.app.state.engine
    result = await check_connection_health(engine)
    if not result["healthy"]:
        # the driver message stays in the server log
        return JSONResponse(status_code=503, content={"healthy": False})
    return JSONResponse(
        status_code=200,
        content={"healthy": True, "latencyMs": result["latency_ms"], "pool": get_pool_stats(engine)},
    )
