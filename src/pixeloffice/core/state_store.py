"""进程内部门状态表与变更检测。"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from pixeloffice.core.rule_engine import ActivityState

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass(frozen=True)
class UnitSnapshot:
    """单个部门一次刷新的完整结果，只整体替换，不局部修改。"""

    unit_id: str
    state: ActivityState
    population: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    computed_at: dt.datetime = field(default_factory=_utcnow)

    def to_payload(self) -> Dict[str, Any]:
        metadata = dict(self.metadata)
        metadata.setdefault("lastUpdate", self.computed_at.isoformat())
        return {
            "space": self.unit_id,
            "state": self.state.value,
            "characterCount": self.population,
            "metadata": metadata,
        }


def placeholder_snapshot(unit_id: str, now: Optional[dt.datetime] = None) -> UnitSnapshot:
    return UnitSnapshot(
        unit_id=unit_id,
        state=ActivityState.IDLE,
        population=0,
        metadata={"placeholder": True},
        computed_at=now or _utcnow(),
    )


class StateStore:
    """部门编码到最新快照的映射，键集合在构造时固定。

    每批刷新先比较全部状态，再在锁内一次性换入新的映射，读者
    不会看到半更新的表。
    """

    def __init__(self, unit_ids: Iterable[str]) -> None:
        now = _utcnow()
        self._snapshots: Dict[str, UnitSnapshot] = {
            unit_id: placeholder_snapshot(unit_id, now) for unit_id in unit_ids
        }
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)

    def get(self, unit_id: str) -> Optional[UnitSnapshot]:
        with self._lock:
            return self._snapshots.get(unit_id)

    def snapshot(self) -> List[UnitSnapshot]:
        """按配置顺序返回当前所有部门快照。"""

        with self._lock:
            return list(self._snapshots.values())

    def apply_refresh(self, snapshots: Iterable[UnitSnapshot]) -> bool:
        """换入一批快照，若任一部门状态发生变化则返回 True。

        只比较 `state`；人数与元数据变化同样会写入，但不会单独触发变更。
        """

        batch = list(snapshots)
        with self._lock:
            updated = dict(self._snapshots)
            changed = False
            for snapshot in batch:
                previous = updated.get(snapshot.unit_id)
                if previous is None:
                    logger.warning("忽略未配置的部门快照: %s", snapshot.unit_id)
                    continue
                if previous.state is not snapshot.state:
                    changed = True
                    logger.info(
                        "部门 %s 状态变化: %s -> %s",
                        snapshot.unit_id,
                        previous.state.value,
                        snapshot.state.value,
                    )
                updated[snapshot.unit_id] = snapshot
            self._snapshots = updated
        return changed
