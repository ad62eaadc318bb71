"""活动数据源接口与快照结构。"""

from __future__ import annotations

import abc
import datetime as dt
from dataclasses import dataclass, field


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass(frozen=True)
class ContentSnapshot:
    """内容空间（Confluence）一次查询结果。"""

    unit_id: str
    page_count: int = 0
    recent_update_count: int = 0
    matched_keywords: frozenset[str] = frozenset()
    observed_at: dt.datetime = field(default_factory=_utcnow)

    def normalized(self) -> "ContentSnapshot":
        """负数计数归零，供规则引擎使用。"""

        return ContentSnapshot(
            unit_id=self.unit_id,
            page_count=max(0, int(self.page_count or 0)),
            recent_update_count=max(0, int(self.recent_update_count or 0)),
            matched_keywords=frozenset(k for k in (self.matched_keywords or ()) if k),
            observed_at=self.observed_at,
        )


@dataclass(frozen=True)
class IssueSnapshot:
    """工单系统（Jira）一次查询结果。"""

    unit_id: str
    in_progress_count: int = 0
    blocked_count: int = 0
    done_today_count: int = 0
    high_priority_open_count: int = 0
    observed_at: dt.datetime = field(default_factory=_utcnow)
    # 单独失败、按 0 计数的子查询
    failed_queries: tuple[str, ...] = ()

    def normalized(self) -> "IssueSnapshot":
        return IssueSnapshot(
            unit_id=self.unit_id,
            in_progress_count=max(0, int(self.in_progress_count or 0)),
            blocked_count=max(0, int(self.blocked_count or 0)),
            done_today_count=max(0, int(self.done_today_count or 0)),
            high_priority_open_count=max(0, int(self.high_priority_open_count or 0)),
            observed_at=self.observed_at,
            failed_queries=tuple(self.failed_queries or ()),
        )


def zero_content(unit_id: str) -> ContentSnapshot:
    return ContentSnapshot(unit_id=unit_id)


def zero_issues(unit_id: str) -> IssueSnapshot:
    return IssueSnapshot(unit_id=unit_id)


class ContentProvider(abc.ABC):
    """内容活跃度数据源。"""

    @abc.abstractmethod
    async def query_content(self, unit_id: str) -> ContentSnapshot:
        """查询部门近期内容活动；不可用时抛出 `ProviderUnavailable`。"""

    def health(self) -> dict[str, bool]:
        return {"configured": True}

    async def aclose(self) -> None:
        """释放连接等资源，默认无需处理。"""


class IssueProvider(abc.ABC):
    """工单活跃度数据源。"""

    @abc.abstractmethod
    async def query_issues(self, unit_id: str) -> IssueSnapshot:
        """查询部门工单计数；不可用时抛出 `ProviderUnavailable`。"""

    def health(self) -> dict[str, bool]:
        return {"configured": True}

    async def aclose(self) -> None:
        """释放连接等资源，默认无需处理。"""
