"""开发环境启动看板服务。"""

from __future__ import annotations

import asyncio
import logging
import signal
import threading
from contextlib import suppress
from typing import Optional

import uvicorn

from pixeloffice.config import AppConfig
from pixeloffice.ui import create_app

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="[%(asctime)s][%(levelname)s] %(name)s: %(message)s")


async def main(config: Optional[AppConfig] = None) -> None:
    config_model = config or AppConfig.load()
    app = create_app(config=config_model)

    uvicorn_config = uvicorn.Config(app, host=config_model.host, port=config_model.port, reload=False)
    server = uvicorn.Server(uvicorn_config)

    if threading.current_thread() is threading.main_thread():
        stop_event = asyncio.Event()

        def _handle_stop(*_: object) -> None:
            logger.info("收到终止信号，准备关闭服务器…")
            server.should_exit = True
            stop_event.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _handle_stop)

        async def _serve() -> None:
            await server.serve()
            stop_event.set()

        serve_task = asyncio.create_task(_serve())

        await stop_event.wait()
        # 让 uvicorn 走完 lifespan 关闭流程，停止定时器并断开订阅者
        with suppress(asyncio.CancelledError):
            await serve_task
    else:
        await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
