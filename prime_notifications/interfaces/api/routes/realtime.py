"""Websocket endpoint streaming notification events to connected users."""

from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket

from prime_notifications.infrastructure.notifications import RealtimeGateway
from prime_notifications.interfaces.api.dependencies import get_gateway

router = APIRouter(tags=["notifications"])


@router.websocket("/ws")
async def notifications_websocket(
    websocket: WebSocket,
    gateway: RealtimeGateway = Depends(get_gateway),
) -> None:
    """Serve ``/ws?userId=<id>`` through the application's realtime gateway."""

    await gateway.serve(websocket)
