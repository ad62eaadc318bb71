"""部门活跃状态判定规则。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from pixeloffice.adapters.base import ContentSnapshot, IssueSnapshot
from pixeloffice.config import RuleThresholds

CONTENT_SOURCE = "content"
ISSUES_SOURCE = "issues"
BOTH_SOURCES = "both"


class ActivityState(Enum):
    """房间状态枚举，取值即推送给前端的字符串。"""

    BLOCKED = "blocked"
    SHIPPING = "shipping"
    CRUNCH = "crunch"
    ACTIVE = "active"
    PLANNING = "planning"
    IDLE = "idle"
    OFF_HOURS = "off-hours"


# 冲突时的优先顺序，靠前者优先
PRECEDENCE: tuple[ActivityState, ...] = (
    ActivityState.BLOCKED,
    ActivityState.SHIPPING,
    ActivityState.CRUNCH,
    ActivityState.PLANNING,
    ActivityState.ACTIVE,
    ActivityState.IDLE,
    ActivityState.OFF_HOURS,
)


def precedence_rank(state: ActivityState) -> int:
    """返回状态在优先顺序中的位置，0 为最高。"""

    return PRECEDENCE.index(state)


@dataclass(frozen=True)
class SourceVerdict:
    """单一数据源给出的判定。"""

    state: ActivityState
    source: str

    @property
    def rank(self) -> int:
        return precedence_rank(self.state)


@dataclass
class StateDecision:
    state: ActivityState
    metadata: Dict[str, Any]


def _matches_any(keywords: Iterable[str], triggers: Iterable[str]) -> bool:
    lowered = [k.lower() for k in keywords]
    for trigger in triggers:
        needle = trigger.lower()
        if any(needle in keyword for keyword in lowered):
            return True
    return False


class RuleEngine:
    """根据内容与工单两类快照计算房间状态。

    两个分类器互相独立：内容分类器可给出全部七种状态，工单分类器
    只会给出 Blocked / Shipping / Crunch / Active / Idle。合并时
    Blocked 与 Shipping 无条件胜出，其余按优先顺序取高者，平局取内容侧。
    """

    def __init__(self, thresholds: Optional[RuleThresholds] = None) -> None:
        self._thresholds = thresholds or RuleThresholds()

    def classify_content(self, content: ContentSnapshot) -> SourceVerdict:
        t = self._thresholds
        keywords = content.matched_keywords
        updates = content.recent_update_count

        if _matches_any(keywords, t.blocked_keywords):
            state = ActivityState.BLOCKED
        elif _matches_any(keywords, t.shipping_keywords):
            state = ActivityState.SHIPPING
        elif updates >= t.crunch_updates:
            state = ActivityState.CRUNCH
        elif _matches_any(keywords, t.planning_keywords):
            state = ActivityState.PLANNING
        elif updates >= t.active_updates:
            state = ActivityState.ACTIVE
        elif updates >= t.idle_updates:
            state = ActivityState.IDLE
        else:
            state = ActivityState.OFF_HOURS
        return SourceVerdict(state=state, source=CONTENT_SOURCE)

    def classify_issues(self, issues: IssueSnapshot) -> SourceVerdict:
        t = self._thresholds

        if issues.blocked_count >= t.blocked_issues:
            state = ActivityState.BLOCKED
        elif issues.done_today_count >= t.shipping_done_today:
            state = ActivityState.SHIPPING
        elif (
            issues.high_priority_open_count >= t.crunch_high_priority
            and issues.in_progress_count >= t.active_in_progress
        ):
            state = ActivityState.CRUNCH
        elif issues.in_progress_count >= t.active_in_progress:
            state = ActivityState.ACTIVE
        else:
            state = ActivityState.IDLE
        return SourceVerdict(state=state, source=ISSUES_SOURCE)

    def determine_state(self, content: ContentSnapshot, issues: IssueSnapshot) -> StateDecision:
        content_verdict = self.classify_content(content)
        issues_verdict = self.classify_issues(issues)

        for dominant in (ActivityState.BLOCKED, ActivityState.SHIPPING):
            drivers = [v.source for v in (content_verdict, issues_verdict) if v.state is dominant]
            if drivers:
                source = drivers[0] if len(drivers) == 1 else BOTH_SOURCES
                return StateDecision(
                    state=dominant,
                    metadata=self._metadata(content, issues, content_verdict, issues_verdict, source),
                )

        winner = issues_verdict if issues_verdict.rank < content_verdict.rank else content_verdict
        return StateDecision(
            state=winner.state,
            metadata=self._metadata(content, issues, content_verdict, issues_verdict, winner.source),
        )

    @staticmethod
    def _metadata(
        content: ContentSnapshot,
        issues: IssueSnapshot,
        content_verdict: SourceVerdict,
        issues_verdict: SourceVerdict,
        source: str,
    ) -> Dict[str, Any]:
        return {
            "source": source,
            "contentState": content_verdict.state.value,
            "issuesState": issues_verdict.state.value,
            "contentPages": content.page_count,
            "contentUpdates": content.recent_update_count,
            "matchedKeywords": sorted(content.matched_keywords),
            "issuesInProgress": issues.in_progress_count,
            "issuesBlocked": issues.blocked_count,
            "issuesDoneToday": issues.done_today_count,
            "issuesHighPriority": issues.high_priority_open_count,
        }


def determine_state(
    content: ContentSnapshot,
    issues: IssueSnapshot,
    thresholds: Optional[RuleThresholds] = None,
) -> StateDecision:
    """使用给定（或默认）阈值判定状态。"""

    return RuleEngine(thresholds).determine_state(content, issues)
