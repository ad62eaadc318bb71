import asyncio
import datetime as dt

from pixeloffice.adapters.base import ContentProvider, ContentSnapshot, IssueProvider, IssueSnapshot
from pixeloffice.adapters.static import StaticContentProvider, StaticIssueProvider
from pixeloffice.core.aggregator import UnitAggregator
from pixeloffice.core.rule_engine import ActivityState
from pixeloffice.exceptions import ProviderUnavailable


def _fixed_now() -> dt.datetime:
    return dt.datetime(2024, 1, 1, 12, 0, 0, tzinfo=dt.timezone.utc)


class _HangingContent(ContentProvider):
    async def query_content(self, unit_id: str) -> ContentSnapshot:
        await asyncio.sleep(10)
        raise AssertionError("should have timed out")


class _UnavailableIssues(IssueProvider):
    async def query_issues(self, unit_id: str) -> IssueSnapshot:
        raise ProviderUnavailable("jira", "未配置 Atlassian 凭据")


class _NegativeContent(ContentProvider):
    async def query_content(self, unit_id: str) -> ContentSnapshot:
        return ContentSnapshot(unit_id=unit_id, page_count=-3, recent_update_count=-7)


def test_refresh_unit_combines_both_sources() -> None:
    aggregator = UnitAggregator(
        StaticContentProvider({"Eng": ContentSnapshot(unit_id="Eng", page_count=30, recent_update_count=20)}),
        StaticIssueProvider({"Eng": IssueSnapshot(unit_id="Eng", in_progress_count=1)}),
        display_names={"Eng": "Engineering"},
    )
    aggregator._now = _fixed_now  # type: ignore[method-assign]

    snapshot = asyncio.run(aggregator.refresh_unit("Eng"))

    assert snapshot.unit_id == "Eng"
    assert snapshot.state is ActivityState.CRUNCH
    assert snapshot.population == 12
    assert snapshot.computed_at == _fixed_now()
    assert snapshot.metadata["displayName"] == "Engineering"
    assert snapshot.metadata["lastUpdate"] == _fixed_now().isoformat()
    assert "errors" not in snapshot.metadata


def test_timeout_falls_back_to_zero_snapshot() -> None:
    aggregator = UnitAggregator(
        _HangingContent(),
        StaticIssueProvider({"X": IssueSnapshot(unit_id="X", in_progress_count=4)}),
        timeout=0.05,
    )

    snapshot = asyncio.run(aggregator.refresh_unit("X"))

    assert snapshot.state is ActivityState.ACTIVE
    assert "content" in snapshot.metadata["errors"]
    assert "超时" in snapshot.metadata["errors"]["content"]
    assert snapshot.metadata["contentUpdates"] == 0


def test_both_sources_unavailable_yields_idle_zero_state() -> None:
    aggregator = UnitAggregator(_HangingContent(), _UnavailableIssues(), timeout=0.05)

    snapshot = asyncio.run(aggregator.refresh_unit("X"))

    assert snapshot.state is ActivityState.IDLE
    assert snapshot.population == 1
    assert set(snapshot.metadata["errors"]) == {"content", "issues"}
    assert "未配置" in snapshot.metadata["errors"]["issues"]


def test_negative_counts_are_normalized() -> None:
    aggregator = UnitAggregator(_NegativeContent(), StaticIssueProvider())

    snapshot = asyncio.run(aggregator.refresh_unit("Eng"))

    assert snapshot.metadata["contentUpdates"] == 0
    assert snapshot.metadata["contentPages"] == 0
    assert snapshot.population >= 0


def test_partial_issue_failure_is_reported_in_metadata() -> None:
    issues = IssueSnapshot(unit_id="Eng", in_progress_count=4, failed_queries=("blocked", "done_today"))
    aggregator = UnitAggregator(StaticContentProvider(), StaticIssueProvider({"Eng": issues}))

    snapshot = asyncio.run(aggregator.refresh_unit("Eng"))

    assert snapshot.state is ActivityState.ACTIVE
    assert set(snapshot.metadata["errors"]) == {"issues"}
    assert "blocked, done_today" in snapshot.metadata["errors"]["issues"]
