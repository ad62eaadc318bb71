"""根据状态与活动量计算房间内角色人数。"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from pixeloffice.config import PopulationRules
from pixeloffice.core.rule_engine import ActivityState


@dataclass(frozen=True)
class ActivityMetrics:
    content_updates: int = 0
    issues_in_progress: int = 0


def volume_multiplier(content_updates: float, rules: Optional[PopulationRules] = None) -> float:
    """活动量倍率：更新数 / 除数，上限为 `max_multiplier`，下限 1.0。"""

    rules = rules or PopulationRules()
    scaled = min(max(0.0, float(content_updates)) / rules.volume_divisor, rules.max_multiplier)
    return max(scaled, 1.0)


def derive_population(
    state: ActivityState,
    metrics: ActivityMetrics,
    rules: Optional[PopulationRules] = None,
) -> int:
    rules = rules or PopulationRules()
    base = max(0, int(rules.base.get(state.value, 0)))
    value = base * volume_multiplier(metrics.content_updates, rules)
    # 四舍五入取半进一，避免银行家舍入
    return max(0, int(math.floor(value + 0.5)))
