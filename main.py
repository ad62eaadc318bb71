"""看板服务启动入口。"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

# 确保 src 加入路径
PROJECT_ROOT = Path(__file__).resolve().parent
SRC_DIR = PROJECT_ROOT / "src"
if SRC_DIR.exists() and str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from pixeloffice.config import AppConfig
from pixeloffice.exceptions import ConfigurationError
from scripts.dev_server import main as run_dev_server


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s][%(levelname)s] %(name)s: %(message)s")

    try:
        config = AppConfig.load()
    except ConfigurationError as exc:
        logging.getLogger(__name__).error("配置无效，服务不会启动: %s", exc)
        sys.exit(2)

    logging.getLogger(__name__).info(
        "像素办公室看板启动：%d 个部门，%d 个轮询分层，数据源 %s",
        len(config.units),
        len(config.tiers),
        config.provider,
    )
    asyncio.run(run_dev_server(config))


if __name__ == "__main__":
    main()
