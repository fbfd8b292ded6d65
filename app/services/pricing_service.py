from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from loguru import logger

from app.pricing.store import PricingDataStore
from app.routing.context import RequestContext
from app.routing.engine import RoutingDecision, RoutingEngine, RoutingExplanation
from app.routing.enums import Variant
from app.routing.errors import DataUnavailableError
from app.routing.stats import StatsAggregator, StatsSnapshot
from app.routing.sticky import CookieDirective


@dataclass(frozen=True)
class RoutedRequest:
    decision: RoutingDecision
    cookie: Optional[CookieDirective]


class PricingService:
    """蓝绿价格服务：路由决策 -> 统计 -> sticky cookie -> 价格数据。

    路由决策一旦做出即计入统计；价格数据读取失败属于下游问题，不回滚统计。
    """

    def __init__(
        self,
        engine: RoutingEngine,
        store: PricingDataStore,
        stats: StatsAggregator | None = None,
    ) -> None:
        self.engine = engine
        self.store = store
        self.stats = stats or StatsAggregator()

    def route(
        self,
        ctx: RequestContext,
        forced_variant: Union[Variant, str, None] = None,
    ) -> RoutedRequest:
        decision = self.engine.decide(ctx, forced_variant=forced_variant)
        self.stats.record(decision.variant, decision.client_identifier)
        cookie = self.engine.sticky.assign(decision.variant)
        return RoutedRequest(decision=decision, cookie=cookie)

    def build_payload(self, decision: RoutingDecision) -> Dict[str, Any]:
        data = self.store.get(decision.variant)
        data["routing"] = decision.to_routing_dict()
        return data

    def explain(self, ctx: RequestContext) -> RoutingExplanation:
        return self.engine.explain(ctx)

    def snapshot(self) -> StatsSnapshot:
        return self.stats.snapshot(cache_stats=self.store.cache_stats())

    def get_stats(self) -> Dict[str, Any]:
        data = self.snapshot().to_dict()
        data["routingConfig"] = self.engine.summary()
        return data

    def reset_stats(self) -> None:
        self.stats.reset()
        logger.info("[PricingService] 统计数据已重置")

    def routing_summary(self) -> Dict[str, Any]:
        return self.engine.summary()

    def health_check(self) -> Dict[str, Any]:
        """两个版本的价格数据都能读取才算 healthy。"""
        try:
            versions = {}
            for version in self.store.available_versions():
                data = self.store.get(Variant.parse(version))
                versions[version] = {
                    "available": True,
                    "plansCount": len(data.get("plans") or []),
                    "lastUpdated": (data.get("metadata") or {}).get("lastUpdated"),
                }
        except DataUnavailableError as exc:
            logger.warning(f"[PricingService] 健康检查失败: {exc}")
            return {
                "status": "unhealthy",
                "error": str(exc),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

        return {
            "status": "healthy",
            "versions": versions,
            "routing": self.engine.summary(),
        }
