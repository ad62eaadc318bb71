"""Confluence 与 Jira REST 数据源。"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Any, Iterable, Optional

import httpx

from pixeloffice.adapters.base import ContentProvider, ContentSnapshot, IssueProvider, IssueSnapshot
from pixeloffice.config import AtlassianSettings
from pixeloffice.exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Any) -> Optional[dt.datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


class AtlassianClient(ContentProvider, IssueProvider):
    """同时实现内容与工单两类数据源，共享一个 HTTP 会话。"""

    def __init__(
        self,
        settings: AtlassianSettings,
        keywords: Iterable[str] = (),
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._keywords = [k.lower() for k in keywords if k]
        self._timeout = timeout
        self._http = http_client
        self._owns_http = http_client is None
        self._transport = transport
        self._closed = False
        self._auth: Optional[httpx.BasicAuth] = None
        if settings.configured:
            self._auth = httpx.BasicAuth(settings.username or "", settings.api_token or "")

    def health(self) -> dict[str, bool]:
        return {"configured": self._settings.configured}

    async def aclose(self) -> None:
        self._closed = True
        if self._http is not None and self._owns_http:
            await self._http.aclose()
        self._http = None

    async def query_content(self, unit_id: str) -> ContentSnapshot:
        self._require_credentials("confluence")
        data = await self._get_json(
            "confluence",
            "/wiki/api/v2/pages",
            {"spaceKey": unit_id, "limit": 100, "sort": "-modified-date"},
        )
        pages = data.get("results") or []
        now = dt.datetime.now(dt.timezone.utc)
        cutoff = now - dt.timedelta(days=self._settings.lookback_days)

        recent_titles: list[str] = []
        for page in pages:
            if not isinstance(page, dict):
                continue
            version = page.get("version") or {}
            modified_at = _parse_timestamp(version.get("createdAt"))
            if modified_at is None or modified_at < cutoff:
                continue
            recent_titles.append(str(page.get("title") or "").lower())

        matched = frozenset(
            keyword for keyword in self._keywords if any(keyword in title for title in recent_titles)
        )
        logger.info("Confluence %s: 近 %d 天更新 %d 个页面", unit_id, self._settings.lookback_days, len(recent_titles))
        return ContentSnapshot(
            unit_id=unit_id,
            page_count=len(pages),
            recent_update_count=len(recent_titles),
            matched_keywords=matched,
            observed_at=now,
        )

    async def query_issues(self, unit_id: str) -> IssueSnapshot:
        """四个子查询相互独立：单个失败按 0 计并记录，全部失败才视为不可用。"""

        self._require_credentials("jira")
        project = f'project="{unit_id}"'
        queries = {
            "in_progress": f'{project} AND status="In Progress"',
            "blocked": f'{project} AND statusCategory="To Do" AND labels=blocked',
            "done_today": f"{project} AND statusCategory=Done AND resolved >= -1d",
            "high_priority": f"{project} AND priority in (Highest, High) AND statusCategory != Done",
        }
        results = await asyncio.gather(
            *(self._count_issues(jql) for jql in queries.values()),
            return_exceptions=True,
        )

        counts: dict[str, int] = {}
        failures: list[str] = []
        reasons: list[str] = []
        for name, result in zip(queries, results):
            if isinstance(result, ProviderUnavailable):
                logger.warning("Jira %s 子查询 %s 失败，按 0 计: %s", unit_id, name, result.reason)
                failures.append(name)
                reasons.append(f"{name}: {result.reason}")
                counts[name] = 0
            elif isinstance(result, BaseException):
                raise result
            else:
                counts[name] = result
        if len(failures) == len(queries):
            raise ProviderUnavailable("jira", "全部子查询失败（" + "; ".join(reasons) + "）")

        logger.info(
            "Jira %s: 进行中 %d，阻塞 %d，今日完成 %d",
            unit_id,
            counts["in_progress"],
            counts["blocked"],
            counts["done_today"],
        )
        return IssueSnapshot(
            unit_id=unit_id,
            in_progress_count=counts["in_progress"],
            blocked_count=counts["blocked"],
            done_today_count=counts["done_today"],
            high_priority_open_count=counts["high_priority"],
            failed_queries=tuple(failures),
        )

    async def _count_issues(self, jql: str) -> int:
        data = await self._get_json(
            "jira",
            "/rest/api/3/search",
            {"jql": jql, "maxResults": 0, "fields": "summary"},
        )
        try:
            return max(0, int(data.get("total") or 0))
        except (TypeError, ValueError):
            return 0

    def _require_credentials(self, source: str) -> None:
        if not self._settings.configured:
            raise ProviderUnavailable(source, "未配置 Atlassian 凭据")

    async def _get_json(self, source: str, path: str, params: dict[str, Any]) -> dict[str, Any]:
        if self._closed:
            raise ProviderUnavailable(source, "客户端已关闭")
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
            self._owns_http = True

        url = f"{self._settings.base_url}{path}"
        try:
            response = await self._http.get(
                url,
                params=params,
                auth=self._auth,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailable(source, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(source, f"请求失败: {exc}") from exc
        except ValueError as exc:
            raise ProviderUnavailable(source, "响应不是合法 JSON") from exc

        if not isinstance(payload, dict):
            raise ProviderUnavailable(source, "响应结构异常")
        return payload
