"""Liveness probe for the objecthub API."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from objecthub import __version__
from objecthub.persistence.db import is_postgres_configured

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str
    time: str
    version: str
    storage_backend: str
    metadata_store: str


@router.get("/health", response_model=HealthResponse)
def get_health(request: Request) -> HealthResponse:
    """Report liveness plus which blob backend and metadata store are wired in.

    Nothing is probed; a reachable endpoint means the process is serving.
    """
    return HealthResponse(
        status="ok",
        time=datetime.now(UTC).isoformat(),
        version=__version__,
        storage_backend=request.app.state.storage_backend.backend_name,
        metadata_store="postgres" if is_postgres_configured() else "memory",
    )
