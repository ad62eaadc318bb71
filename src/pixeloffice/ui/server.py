"""FastAPI 应用：健康检查、状态查询与 WebSocket 推送。"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from pixeloffice.config import AppConfig

if TYPE_CHECKING:
    from pixeloffice.service import DashboardService

logger = logging.getLogger(__name__)


def create_app(
    service: Optional["DashboardService"] = None,
    config: Optional[AppConfig] = None,
) -> FastAPI:
    """构建 FastAPI 应用；服务随应用生命周期启动与停止。"""

    if service is None:
        from pixeloffice.service import create_service

        service = create_service(config)
    _service = service

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await _service.start()
        try:
            yield
        finally:
            await _service.stop()

    app = FastAPI(title="Pixel Office Dashboard", lifespan=lifespan)
    app.state.service = _service

    @app.get("/health", tags=["system"])
    async def health() -> dict:
        return _service.health()

    @app.get("/state", tags=["state"])
    async def state() -> dict:
        return _service.hub.current_message()

    @app.websocket("/ws")
    async def subscribe(websocket: WebSocket) -> None:
        await websocket.accept()
        if not await _service.hub.subscribe(websocket):
            return
        try:
            # 客户端消息不参与任何逻辑，仅用于感知断开
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("客户端断开连接")
        finally:
            _service.hub.unsubscribe(websocket)

    return app
