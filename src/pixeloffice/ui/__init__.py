"""对外接口：HTTP 与 WebSocket。"""

from .server import create_app

__all__ = ["create_app"]
