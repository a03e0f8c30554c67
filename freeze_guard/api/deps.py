"""Shared API dependencies."""

from fastapi import Request

from freeze_guard.services.freeze_service import FreezeService
from freeze_guard.services.key_discovery import KeyDiscovery


def get_freeze_service(request: Request) -> FreezeService:
    """The process-wide service built at startup."""
    return request.app.state.freeze_service


def get_key_discovery(request: Request) -> KeyDiscovery:
    return request.app.state.key_discovery
