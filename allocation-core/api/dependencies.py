"""Shared FastAPI dependency providers for the routers."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from services.engine import AllocationEngine


def get_engine(request: Request) -> AllocationEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Allocation engine is not initialized",
        )
    return engine


__all__ = ["get_engine"]
