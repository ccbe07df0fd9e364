from __future__ import annotations

from fastapi import APIRouter, Request

from ..settings import settings

router = APIRouter()


@router.get("/", tags=["health"])
def health():
    return {
        "message": "LeadHub API",
        "version": "1.0.0",
        "status": "running",
        "port": settings.port,
        "environment": settings.normalized_environment,
        "dynamodb": "configured" if settings.ddb_table_name else "missing",
    }


@router.get("/api/notifications/connections", tags=["health"])
def notification_connections(request: Request):
    registry = request.app.state.connection_registry
    return {
        "ok": True,
        "activeConnections": registry.active_count(),
        "connections": registry.connection_info(),
    }
