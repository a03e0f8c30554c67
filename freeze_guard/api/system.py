"""System API: health check and lock registry status."""

from fastapi import APIRouter, Depends

from freeze_guard.api.deps import get_freeze_service
from freeze_guard.services.freeze_service import FreezeService

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/locks")
def lock_status(service: FreezeService = Depends(get_freeze_service)):
    """Number of keys with a mutation currently in flight or waiting."""
    return {"active_keys": len(service.locks)}
