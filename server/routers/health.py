"""Service health route."""

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from core.health import get_health_status

router = APIRouter(tags=["health"])


@router.get("/health/")
async def health_check(request: Request):
    """Store availability; 503 while the store is unreachable."""
    container = request.app.state.container
    payload = await get_health_status(container.store(), container.settings())
    status_code = status.HTTP_200_OK if payload["availability"] else status.HTTP_503_SERVICE_UNAVAILABLE
    return ORJSONResponse(payload, status_code=status_code)
