"""WebSocket 订阅者管理与全量状态推送。"""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
from typing import Any, Dict, Iterable, Protocol, Set

from pixeloffice.core.state_store import StateStore, UnitSnapshot

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """推送目标，只需支持发送文本（如 starlette `WebSocket`）。"""

    async def send_text(self, data: str) -> None:
        ...


def build_update_message(
    snapshots: Iterable[UnitSnapshot],
    now: dt.datetime | None = None,
) -> Dict[str, Any]:
    """构造推送给前端的 `update` 消息。"""

    timestamp = (now or dt.datetime.now(dt.timezone.utc)).isoformat()
    return {
        "type": "update",
        "timestamp": timestamp,
        "departments": [snapshot.to_payload() for snapshot in snapshots],
    }


class BroadcastHub:
    """维护在线订阅者集合，状态变化时推送完整状态表。

    新订阅者入场与广播共用同一把锁：订阅者收到的第一条消息一定是
    当时的全量快照，之后才可能收到广播。
    """

    def __init__(self, store: StateStore, send_timeout: float = 5.0) -> None:
        self._store = store
        self._send_timeout = send_timeout
        self._subscribers: Set[Subscriber] = set()
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def current_message(self) -> Dict[str, Any]:
        return build_update_message(self._store.snapshot())

    async def _send(self, subscriber: Subscriber, payload: str) -> None:
        try:
            await asyncio.wait_for(subscriber.send_text(payload), timeout=self._send_timeout)
        except asyncio.TimeoutError as exc:
            raise TimeoutError(f"发送超时（{self._send_timeout:g}s）") from exc

    async def subscribe(self, subscriber: Subscriber) -> bool:
        """发送当前全量状态并登记订阅者；首条消息发送失败时返回 False。"""

        async with self._lock:
            payload = json.dumps(self.current_message(), ensure_ascii=False)
            try:
                await self._send(subscriber, payload)
            except Exception as exc:
                logger.warning("向新订阅者发送初始状态失败: %s", exc)
                return False
            self._subscribers.add(subscriber)
        logger.info("订阅者已连接，当前 %d 个", len(self._subscribers))
        return True

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info("订阅者已断开，当前 %d 个", len(self._subscribers))

    async def broadcast(self) -> int:
        """并发向所有订阅者推送当前全量状态，返回成功送达的数量。

        单个订阅者发送失败或超时只会被移除，不影响其他订阅者。
        """

        async with self._lock:
            if not self._subscribers:
                return 0
            payload = json.dumps(self.current_message(), ensure_ascii=False)
            targets = list(self._subscribers)
            results = await asyncio.gather(
                *(self._send(subscriber, payload) for subscriber in targets),
                return_exceptions=True,
            )
            delivered = 0
            for subscriber, result in zip(targets, results):
                if isinstance(result, BaseException):
                    self._subscribers.discard(subscriber)
                    logger.warning("推送失败，移除订阅者: %s", result)
                    continue
                delivered += 1
        if delivered:
            logger.info("已推送至 %d 个订阅者", delivered)
        return delivered

    async def close(self) -> None:
        """关闭全部订阅连接。"""

        async with self._lock:
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for subscriber in subscribers:
            close = getattr(subscriber, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as exc:
                logger.debug("关闭订阅连接时出错: %s", exc)
