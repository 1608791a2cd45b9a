from .main import main_router
from .realtime import websocket_router

__all__ = ["main_router", "websocket_router"]
