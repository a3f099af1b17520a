"""Liveness endpoint."""

from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter(tags=["System"])


class PingResponse(BaseModel):
    ping: str = "pong"


@router.get("/ping", response_model=PingResponse)
async def ping() -> PingResponse:
    """Answer without touching the module registry or the event bus.

    Use ``/health-check`` to see whether modules finished bootstrapping.
    """
    return PingResponse()
