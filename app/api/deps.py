# 依赖注入（服务单例、请求上下文）
from functools import lru_cache

from fastapi import Request

from app.core.config import settings
from app.pricing.store import PricingDataStore
from app.routing.config import load_routing_config
from app.routing.context import RequestContext
from app.routing.engine import RoutingEngine
from app.routing.stats import StatsAggregator
from app.routing.sticky import StickySessionManager
from app.services.pricing_service import PricingService


# 进程内单例：路由配置只在启动时加载一次，统计计数跨请求共享
@lru_cache(maxsize=1)
def get_pricing_service() -> PricingService:
    config = load_routing_config(settings.ROUTING_RULES_PATH, settings)
    sticky = StickySessionManager(config.sticky_session, secure=settings.is_production)
    engine = RoutingEngine(config, sticky=sticky)
    store = PricingDataStore(settings.PRICING_DATA_DIR, cache_seconds=settings.PRICING_CACHE_SECONDS)
    return PricingService(engine=engine, store=store, stats=StatsAggregator())


def get_request_context(request: Request) -> RequestContext:
    return RequestContext.from_request(request, trust_proxy=settings.TRUST_PROXY)
