"""核心业务逻辑：状态判定、人数计算、状态表与部门聚合。"""

from .aggregator import UnitAggregator
from .population import ActivityMetrics, derive_population
from .rule_engine import ActivityState, RuleEngine, determine_state
from .state_store import StateStore, UnitSnapshot

__all__ = [
    "ActivityMetrics",
    "ActivityState",
    "RuleEngine",
    "StateStore",
    "UnitAggregator",
    "UnitSnapshot",
    "derive_population",
    "determine_state",
]
