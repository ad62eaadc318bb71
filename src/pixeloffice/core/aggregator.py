"""单个部门的数据采集与状态合成。"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Awaitable, Callable, Mapping, Optional, TypeVar

from pixeloffice.adapters.base import (
    ContentProvider,
    IssueProvider,
    zero_content,
    zero_issues,
)
from pixeloffice.config import PopulationRules
from pixeloffice.core.population import ActivityMetrics, derive_population
from pixeloffice.core.rule_engine import RuleEngine
from pixeloffice.core.state_store import UnitSnapshot
from pixeloffice.exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitAggregator:
    """并发查询两个数据源，合成部门快照。

    任一数据源失败（异常或超时）时以零值快照代替，并把原因写入
    元数据；`refresh_unit` 永远返回快照而不抛出。
    """

    def __init__(
        self,
        content_provider: ContentProvider,
        issue_provider: IssueProvider,
        engine: Optional[RuleEngine] = None,
        population_rules: Optional[PopulationRules] = None,
        timeout: float = 10.0,
        display_names: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._content_provider = content_provider
        self._issue_provider = issue_provider
        self._engine = engine or RuleEngine()
        self._population_rules = population_rules or PopulationRules()
        self._timeout = timeout
        self._display_names = dict(display_names or {})

    async def refresh_unit(self, unit_id: str) -> UnitSnapshot:
        (content, content_error), (issues, issues_error) = await asyncio.gather(
            self._guarded(
                "content",
                unit_id,
                lambda: self._content_provider.query_content(unit_id),
                zero_content,
            ),
            self._guarded(
                "issues",
                unit_id,
                lambda: self._issue_provider.query_issues(unit_id),
                zero_issues,
            ),
        )

        content = content.normalized()
        issues = issues.normalized()
        decision = self._engine.determine_state(content, issues)
        population = derive_population(
            decision.state,
            ActivityMetrics(
                content_updates=content.recent_update_count,
                issues_in_progress=issues.in_progress_count,
            ),
            self._population_rules,
        )

        now = self._now()
        metadata = dict(decision.metadata)
        if unit_id in self._display_names:
            metadata["displayName"] = self._display_names[unit_id]
        errors = {}
        if content_error is not None:
            errors["content"] = content_error
        if issues_error is not None:
            errors["issues"] = issues_error
        elif issues.failed_queries:
            errors["issues"] = "部分子查询失败，按 0 计: " + ", ".join(issues.failed_queries)
        if errors:
            metadata["errors"] = errors
        metadata["lastUpdate"] = now.isoformat()

        return UnitSnapshot(
            unit_id=unit_id,
            state=decision.state,
            population=population,
            metadata=metadata,
            computed_at=now,
        )

    async def _guarded(
        self,
        source: str,
        unit_id: str,
        call: Callable[[], Awaitable[T]],
        fallback: Callable[[str], T],
    ) -> tuple[T, Optional[str]]:
        try:
            result = await asyncio.wait_for(call(), timeout=self._timeout)
        except asyncio.TimeoutError:
            reason = f"{source} 查询超时（{self._timeout:g}s）"
        except ProviderUnavailable as exc:
            reason = str(exc)
        except Exception as exc:
            reason = f"{source}: {exc.__class__.__name__}: {exc}"
        else:
            if result is None:
                return fallback(unit_id), f"{source}: 数据源返回空结果"
            return result, None

        logger.warning("部门 %s 的 %s 数据不可用，使用零值快照: %s", unit_id, source, reason)
        return fallback(unit_id), reason

    def _now(self) -> dt.datetime:
        return dt.datetime.now(dt.timezone.utc)
