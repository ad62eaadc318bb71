"""固定数据源，用于开发与测试，返回确定性结果。"""

from __future__ import annotations

import asyncio
from typing import Mapping, Optional

from pixeloffice.adapters.base import (
    ContentProvider,
    ContentSnapshot,
    IssueProvider,
    IssueSnapshot,
    zero_content,
    zero_issues,
)


class StaticContentProvider(ContentProvider):
    """按部门返回预置的内容快照，未预置的部门返回零值快照。"""

    def __init__(self, snapshots: Optional[Mapping[str, ContentSnapshot]] = None) -> None:
        self._snapshots = dict(snapshots or {})

    async def query_content(self, unit_id: str) -> ContentSnapshot:
        await asyncio.sleep(0)
        return self._snapshots.get(unit_id) or zero_content(unit_id)


class StaticIssueProvider(IssueProvider):
    """按部门返回预置的工单快照。"""

    def __init__(self, snapshots: Optional[Mapping[str, IssueSnapshot]] = None) -> None:
        self._snapshots = dict(snapshots or {})

    async def query_issues(self, unit_id: str) -> IssueSnapshot:
        await asyncio.sleep(0)
        return self._snapshots.get(unit_id) or zero_issues(unit_id)
