"""Routers package for the messaging API."""

from .admin import router as admin_router
from .connections import router as connections_router
from .messages import router as messages_router
from alumnet.realtime.socket import router as socket_router

__all__ = ["admin_router", "connections_router", "messages_router", "socket_router"]
