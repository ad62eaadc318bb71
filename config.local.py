"""本地配置覆盖示例：`AppConfig.load()` 会自动加载本文件中的 `load_config`。"""

from pixeloffice.config import AppConfig, RuleThresholds, TierConfig, UnitConfig


def load_config() -> AppConfig:
    return AppConfig(
        units=[
            UnitConfig(code="Eng", display_name="Engineering"),
            UnitConfig(code="QA", display_name="Quality Assurance"),
            UnitConfig(code="ADS", display_name="Advertising"),
            UnitConfig(code="EP", display_name="Eng Platform"),
            UnitConfig(code="PM", display_name="Product Management"),
            UnitConfig(code="Ops", display_name="Operations"),
            UnitConfig(code="DW", display_name="Data Warehouse"),
            UnitConfig(code="IT", display_name="IT Support"),
            UnitConfig(code="MKT", display_name="Marketing"),
            UnitConfig(code="OM", display_name="Office Management"),
        ],
        tiers=[
            TierConfig(name="fast", unit_ids=["Eng", "QA", "PM"], interval_ms=30_000),
            TierConfig(name="medium", unit_ids=["ADS", "MKT", "IT"], interval_ms=60_000),
            TierConfig(name="slow", unit_ids=["Ops", "EP", "DW", "OM"], interval_ms=120_000),
        ],
        thresholds=RuleThresholds(
            crunch_updates=15,
            active_updates=5,
            idle_updates=1,
            blocked_issues=2,
            shipping_done_today=5,
            crunch_high_priority=5,
            active_in_progress=3,
        ),
        provider="atlassian",
        provider_timeout_seconds=10.0,
        port=8080,
        # provider="static",  # 不访问 Atlassian，所有部门返回确定性的零值快照
    )
