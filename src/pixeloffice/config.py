"""应用配置模型：部门、轮询分层、判定阈值与数据源凭据。"""

from __future__ import annotations

import importlib.util
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from pixeloffice.exceptions import ConfigurationError


# 内容（Confluence）每周更新数阈值
CRUNCH_THRESHOLD = 15
ACTIVE_THRESHOLD = 5
IDLE_THRESHOLD = 1

# 工单（Jira）计数阈值
BLOCKED_THRESHOLD = 2
SHIPPING_THRESHOLD = 5
CRUNCH_HP_THRESHOLD = 5
ACTIVE_INPROGRESS_THRESHOLD = 3

BLOCKED_KEYWORDS = ["war room", "rejection", "incident", "blocked", "critical issue"]
SHIPPING_KEYWORDS = ["release", "deployment", "shipped", "launched", "published"]
PLANNING_KEYWORDS = ["prd", "design", "spec", "planning", "retrospective"]
CRUNCH_KEYWORDS = ["urgent", "asap", "emergency", "hotfix", "critical"]


class UnitConfig(BaseModel):
    """单个部门（组织单元）配置。"""

    code: str = Field(..., min_length=1)
    display_name: str


class TierConfig(BaseModel):
    """轮询分层：同层部门共享同一刷新周期。"""

    name: str
    unit_ids: list[str] = Field(default_factory=list)
    interval_ms: int

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0


class RuleThresholds(BaseModel):
    """状态判定阈值，可在 `config.local.py` 中调整。"""

    crunch_updates: int = Field(CRUNCH_THRESHOLD, ge=0)
    active_updates: int = Field(ACTIVE_THRESHOLD, ge=0)
    idle_updates: int = Field(IDLE_THRESHOLD, ge=0)
    blocked_issues: int = Field(BLOCKED_THRESHOLD, ge=0)
    shipping_done_today: int = Field(SHIPPING_THRESHOLD, ge=0)
    crunch_high_priority: int = Field(CRUNCH_HP_THRESHOLD, ge=0)
    active_in_progress: int = Field(ACTIVE_INPROGRESS_THRESHOLD, ge=0)
    blocked_keywords: list[str] = Field(default_factory=lambda: list(BLOCKED_KEYWORDS))
    shipping_keywords: list[str] = Field(default_factory=lambda: list(SHIPPING_KEYWORDS))
    planning_keywords: list[str] = Field(default_factory=lambda: list(PLANNING_KEYWORDS))
    crunch_keywords: list[str] = Field(default_factory=lambda: list(CRUNCH_KEYWORDS))

    def all_keywords(self) -> list[str]:
        """数据源提取标题关键词时使用的完整触发词表。"""

        seen: list[str] = []
        for group in (
            self.blocked_keywords,
            self.shipping_keywords,
            self.planning_keywords,
            self.crunch_keywords,
        ):
            for keyword in group:
                lowered = keyword.lower()
                if lowered not in seen:
                    seen.append(lowered)
        return seen


class PopulationRules(BaseModel):
    """房间人数计算参数。"""

    base: dict[str, int] = Field(
        default_factory=lambda: {
            "blocked": 4,
            "shipping": 6,
            "crunch": 8,
            "active": 5,
            "planning": 4,
            "idle": 1,
            "off-hours": 0,
        }
    )
    volume_divisor: float = Field(10.0, gt=0.0)
    max_multiplier: float = Field(1.5, ge=1.0)


class AtlassianSettings(BaseModel):
    """Confluence / Jira 访问凭据，默认取自环境变量。"""

    base_url: Optional[str] = None
    username: Optional[str] = None
    api_token: Optional[str] = None
    lookback_days: int = Field(7, ge=1)

    @classmethod
    def from_env(cls) -> "AtlassianSettings":
        url = os.environ.get("CONFLUENCE_URL") or None
        if url is not None:
            # 同一站点同时承载 Confluence 与 Jira
            url = url.rstrip("/")
            if url.endswith("/wiki"):
                url = url[: -len("/wiki")]
        return cls(
            base_url=url,
            username=os.environ.get("CONFLUENCE_USERNAME") or None,
            api_token=os.environ.get("CONFLUENCE_API_TOKEN") or None,
        )

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.username and self.api_token)


def _default_units() -> list[UnitConfig]:
    return [
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
    ]


def _default_tiers() -> list[TierConfig]:
    return [
        TierConfig(name="fast", unit_ids=["Eng", "QA", "PM"], interval_ms=30_000),
        TierConfig(name="medium", unit_ids=["ADS", "MKT", "IT"], interval_ms=60_000),
        TierConfig(name="slow", unit_ids=["Ops", "EP", "DW", "OM"], interval_ms=120_000),
    ]


class AppConfig(BaseModel):
    """总配置，启动时加载一次，运行期间不再修改。"""

    units: list[UnitConfig] = Field(default_factory=_default_units)
    tiers: list[TierConfig] = Field(default_factory=_default_tiers)
    thresholds: RuleThresholds = Field(default_factory=RuleThresholds)
    population: PopulationRules = Field(default_factory=PopulationRules)
    provider: Literal["atlassian", "static"] = "atlassian"
    provider_timeout_seconds: float = Field(10.0, gt=0.0)
    subscriber_send_timeout_seconds: float = Field(5.0, gt=0.0)
    atlassian: AtlassianSettings = Field(default_factory=AtlassianSettings.from_env)
    host: str = "127.0.0.1"
    port: int = Field(8080, ge=1, le=65535)

    @model_validator(mode="after")
    def _check_layout(self) -> "AppConfig":
        codes = [unit.code for unit in self.units]
        duplicated = sorted({code for code in codes if codes.count(code) > 1})
        if duplicated:
            raise ConfigurationError(f"部门编码重复: {', '.join(duplicated)}")

        known = set(codes)
        owner: dict[str, str] = {}
        tier_names: set[str] = set()
        for tier in self.tiers:
            if tier.name in tier_names:
                raise ConfigurationError(f"轮询分层重名: {tier.name}")
            tier_names.add(tier.name)
            if tier.interval_ms <= 0:
                raise ConfigurationError(f"轮询分层 {tier.name} 的间隔必须为正数")
            for unit_id in tier.unit_ids:
                if unit_id not in known:
                    raise ConfigurationError(f"轮询分层 {tier.name} 引用了未知部门 {unit_id}")
                if unit_id in owner:
                    raise ConfigurationError(
                        f"部门 {unit_id} 同时属于 {owner[unit_id]} 与 {tier.name} 两个分层"
                    )
                owner[unit_id] = tier.name

        orphans = [code for code in codes if code not in owner]
        if orphans:
            raise ConfigurationError(f"以下部门未分配轮询分层: {', '.join(orphans)}")
        return self

    @property
    def unit_ids(self) -> list[str]:
        return [unit.code for unit in self.units]

    def tier_of(self, unit_id: str) -> Optional[str]:
        for tier in self.tiers:
            if unit_id in tier.unit_ids:
                return tier.name
        return None

    @classmethod
    def load_default(cls) -> "AppConfig":
        return cls()

    @classmethod
    def load(cls) -> "AppConfig":
        """优先尝试加载项目根目录的 `config.local.py`，否则返回默认配置。"""

        root_dir = Path(__file__).resolve().parents[2]
        local_path = root_dir / "config.local.py"
        if not local_path.exists():
            return cls.load_default()

        spec = importlib.util.spec_from_file_location("config_local", local_path)
        if spec is None or spec.loader is None:
            return cls.load_default()

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)  # type: ignore[arg-type]
        except ConfigurationError:
            raise
        except Exception:
            logging.getLogger(__name__).warning("无法加载 %s，使用默认配置", local_path, exc_info=True)
            return cls.load_default()

        load_fn = getattr(module, "load_config", None)
        if callable(load_fn):
            return load_fn()
        return cls.load_default()
