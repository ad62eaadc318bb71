"""后台轮询服务：分层定时刷新、状态表更新与广播。"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from pixeloffice.adapters import (
    AtlassianClient,
    ContentProvider,
    IssueProvider,
    StaticContentProvider,
    StaticIssueProvider,
)
from pixeloffice.config import AppConfig, TierConfig
from pixeloffice.core.aggregator import UnitAggregator
from pixeloffice.core.rule_engine import RuleEngine
from pixeloffice.core.state_store import StateStore
from pixeloffice.ui.hub import BroadcastHub

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[Sequence[str]], Awaitable[bool]]
SleepFn = Callable[[float], Awaitable[None]]


class TierState(Enum):
    IDLE = auto()
    RUNNING = auto()


class TierPoller:
    """单个轮询分层的定时器。

    每个周期触发一次刷新；若上一次刷新尚未结束，本次直接跳过，
    保证同一分层最多只有一个刷新在执行。
    """

    def __init__(
        self,
        tier: TierConfig,
        refresh: RefreshCallback,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._tier = tier
        self._refresh = refresh
        self._sleep = sleep
        self._loop_task: Optional[asyncio.Task[None]] = None
        self._in_flight: Optional[asyncio.Task[bool]] = None
        self.skipped_ticks = 0
        self.completed_ticks = 0

    @property
    def name(self) -> str:
        return self._tier.name

    @property
    def state(self) -> TierState:
        if self._in_flight is not None and not self._in_flight.done():
            return TierState.RUNNING
        return TierState.IDLE

    def tick(self) -> Optional[asyncio.Task[bool]]:
        """触发一次刷新，返回刷新任务；上次未完成时跳过并返回 None。"""

        if self.state is TierState.RUNNING:
            self.skipped_ticks += 1
            logger.warning("分层 %s 上一轮刷新仍在进行，跳过本次触发", self.name)
            return None

        task = asyncio.create_task(self._run_refresh(), name=f"pixeloffice-tier-{self.name}")
        self._in_flight = task
        return task

    async def _run_refresh(self) -> bool:
        try:
            return await self._refresh(list(self._tier.unit_ids))
        except Exception:
            logger.exception("分层 %s 刷新失败", self.name)
            return False
        finally:
            self.completed_ticks += 1

    def start(self) -> None:
        if self._loop_task is not None:
            return

        async def _loop() -> None:
            while True:
                await self._sleep(self._tier.interval_seconds)
                self.tick()

        self._loop_task = asyncio.create_task(_loop(), name=f"pixeloffice-timer-{self.name}")

    def stop(self) -> None:
        """取消定时器；进行中的刷新不强制中断。"""

        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None


class DashboardService:
    """持有状态表、广播中心与各分层定时器，进程内只构造一次。"""

    def __init__(
        self,
        config: AppConfig,
        content_provider: ContentProvider,
        issue_provider: IssueProvider,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._config = config
        self._content_provider = content_provider
        self._issue_provider = issue_provider
        self.store = StateStore(config.unit_ids)
        self.hub = BroadcastHub(self.store, send_timeout=config.subscriber_send_timeout_seconds)
        self.aggregator = UnitAggregator(
            content_provider,
            issue_provider,
            engine=RuleEngine(config.thresholds),
            population_rules=config.population,
            timeout=config.provider_timeout_seconds,
            display_names={unit.code: unit.display_name for unit in config.units},
        )
        self.pollers = [TierPoller(tier, self.refresh_units, sleep=sleep) for tier in config.tiers]
        self._started = False

    def health(self) -> dict:
        return {
            "status": "ok",
            "content": self._content_provider.health(),
            "issues": self._issue_provider.health(),
            "subscribers": self.hub.subscriber_count,
        }

    async def refresh_units(self, unit_ids: Iterable[str]) -> bool:
        """刷新一批部门，状态有变化时广播，返回是否发生变化。"""

        unit_ids = list(unit_ids)
        snapshots = await asyncio.gather(*(self.aggregator.refresh_unit(u) for u in unit_ids))
        changed = self.store.apply_refresh(snapshots)
        if changed:
            await self.hub.broadcast()
        return changed

    async def refresh_all(self) -> bool:
        logger.info("刷新全部 %d 个部门…", len(self._config.units))
        return await self.refresh_units(self._config.unit_ids)

    async def start(self) -> None:
        """先全量刷新一次，再进入分层轮询。"""

        if self._started:
            return
        self._started = True
        await self.refresh_all()
        for tier, poller in zip(self._config.tiers, self.pollers):
            poller.start()
            logger.info("分层 %s（%s）每 %dms 轮询一次", tier.name, ", ".join(tier.unit_ids), tier.interval_ms)

    async def stop(self) -> None:
        """停止定时器、断开订阅者，最后释放数据源连接。"""

        if not self._started:
            return
        self._started = False
        for poller in self.pollers:
            poller.stop()
        await self.hub.close()
        await self._content_provider.aclose()
        # Atlassian 部署下两类数据源是同一个客户端
        if self._issue_provider is not self._content_provider:
            await self._issue_provider.aclose()
        logger.info("服务已停止")


def build_providers(config: AppConfig) -> tuple[ContentProvider, IssueProvider]:
    """根据部署配置选择数据源实现。"""

    if config.provider == "static":
        return StaticContentProvider(), StaticIssueProvider()

    if not config.atlassian.configured:
        logger.warning("未配置 Atlassian 凭据，所有部门将使用零值快照")
    client = AtlassianClient(
        config.atlassian,
        keywords=config.thresholds.all_keywords(),
        timeout=config.provider_timeout_seconds,
    )
    return client, client


def create_service(config: Optional[AppConfig] = None) -> DashboardService:
    config = config or AppConfig.load()
    content_provider, issue_provider = build_providers(config)
    return DashboardService(config, content_provider, issue_provider)
