"""看板服务异常定义。"""

from __future__ import annotations


class PixelOfficeError(Exception):
    """所有看板异常的基类。"""


class ConfigurationError(PixelOfficeError):
    """静态配置不合法，服务不得启动。"""


class ProviderUnavailable(PixelOfficeError):
    """数据源不可用：缺少凭据、请求失败或超时。"""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason
