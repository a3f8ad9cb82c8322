"""Operations endpoints (health check and development diagnostics)."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

operations_router = APIRouter(tags=["Operations"])


def _private_response(body: dict, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers={"Cache-Control": "private, no-store"})


@operations_router.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    return _private_response({"status": "healthy"})


@operations_router.get("/dev/permission-errors")
async def permission_errors(request: Request):
    """
    Return the most recent access-policy rejections, newest last.

    Permissions:
        Development environments only; responds 404 elsewhere so the endpoint
        is indistinguishable from an unknown path.
    """
    if not request.app.state.settings.is_dev:
        return _private_response({"detail": "Not Found"}, status_code=404)
    events = [event.as_dict() for event in request.app.state.channel.recent()]
    return _private_response({"events": events})
