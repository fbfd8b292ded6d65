from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Dict, Optional

from app.routing.enums import Variant


@dataclass(frozen=True)
class VariantStat:
    count: int
    percentage: float


@dataclass(frozen=True)
class StatsSnapshot:
    total_requests: int
    version_distribution: Dict[Variant, VariantStat]
    unique_clients: int
    cache_stats: Dict[str, Any] = field(default_factory=dict)

    def count(self, variant: Variant) -> int:
        return self.version_distribution[variant].count

    def percentage(self, variant: Variant) -> float:
        return self.version_distribution[variant].percentage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "versionDistribution": {
                v.value: {"count": s.count, "percentage": s.percentage}
                for v, s in self.version_distribution.items()
            },
            "uniqueClients": self.unique_clients,
            "cacheStats": dict(self.cache_stats),
        }


class StatsAggregator:
    """进程内分流统计。

    所有读写都在同一把锁内完成，snapshot 不会看到半更新状态。
    per-client 计数无上限增长：演示规模可接受，生产规模需要改为带淘汰的结构。
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._by_variant: Counter = Counter({v: 0 for v in Variant})
        self._by_client: Counter = Counter()

    def record(self, variant: Variant, client_identifier: str) -> None:
        variant = Variant.parse(variant)
        with self._lock:
            self._by_variant[variant] += 1
            self._by_client[client_identifier] += 1

    def snapshot(self, cache_stats: Optional[Dict[str, Any]] = None) -> StatsSnapshot:
        with self._lock:
            counts = {v: int(self._by_variant[v]) for v in Variant}
            unique_clients = len(self._by_client)

        total = sum(counts.values())
        distribution = {
            v: VariantStat(count=c, percentage=round(c / total * 100, 2) if total > 0 else 0.0)
            for v, c in counts.items()
        }
        return StatsSnapshot(
            total_requests=total,
            version_distribution=distribution,
            unique_clients=unique_clients,
            cache_stats=dict(cache_stats or {}),
        )

    def client_requests(self, client_identifier: str) -> int:
        with self._lock:
            return int(self._by_client.get(client_identifier, 0))

    def reset(self) -> None:
        with self._lock:
            self._by_variant = Counter({v: 0 for v in Variant})
            self._by_client.clear()
