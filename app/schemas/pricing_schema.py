"""
蓝绿价格服务 API Schema

定义价格数据、路由元信息、统计与健康检查相关的响应模型，以及统一的响应外壳。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RoutingInfo(BaseModel):
    """本次请求的路由结果"""

    version: str = Field(..., description="blue / green")
    served_at: str = Field(..., alias="servedAt")
    client_id: str = Field(..., alias="clientId")
    routing_reason: str = Field(..., alias="routingReason", description="路由原因标签")

    model_config = ConfigDict(populate_by_name=True)


class PricingPlan(BaseModel):
    id: str
    name: str
    price: Union[int, float]
    features: List[str] = Field(..., min_length=1)

    model_config = ConfigDict(extra="allow")


class PricingPayload(BaseModel):
    """价格数据（文件内容 + 加载信息 + 路由元信息）"""

    version: str
    title: str
    plans: List[PricingPlan] = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    loaded_at: Optional[str] = Field(default=None, alias="loadedAt")
    routing: RoutingInfo

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ResponseMeta(BaseModel):
    response_time: Optional[int] = Field(default=None, alias="responseTime", description="毫秒")
    timestamp: str = Field(default_factory=utc_now_iso)
    forced: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)


class ApiEnvelope(BaseModel, Generic[T]):
    """通用接口响应包装。"""

    success: bool = True
    data: T
    meta: ResponseMeta = Field(default_factory=ResponseMeta)

    model_config = ConfigDict(populate_by_name=True)


class ErrorDetail(BaseModel):
    message: str
    details: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: ErrorDetail
    meta: ResponseMeta = Field(default_factory=ResponseMeta)

    model_config = ConfigDict(populate_by_name=True)


class MessageEnvelope(BaseModel):
    success: bool = True
    message: str
    meta: ResponseMeta = Field(default_factory=ResponseMeta)

    model_config = ConfigDict(populate_by_name=True)


class VariantCount(BaseModel):
    count: int
    percentage: float


class PercentageSplit(BaseModel):
    blue: int
    green: int


class RoutingSummary(BaseModel):
    enabled_rules: List[str] = Field(..., alias="enabledRules")
    priority: List[str]
    percentage_split: PercentageSplit = Field(..., alias="percentageSplit")

    model_config = ConfigDict(populate_by_name=True)


class StatsData(BaseModel):
    total_requests: int = Field(..., alias="totalRequests")
    version_distribution: Dict[str, VariantCount] = Field(..., alias="versionDistribution")
    unique_clients: int = Field(..., alias="uniqueClients")
    routing_config: RoutingSummary = Field(..., alias="routingConfig")
    cache_stats: Dict[str, Any] = Field(default_factory=dict, alias="cacheStats")

    model_config = ConfigDict(populate_by_name=True)


class TraceStepOut(BaseModel):
    step: str
    outcome: str
    version: Optional[str] = None


class ExplainData(BaseModel):
    routing: RoutingInfo
    steps: List[TraceStepOut] = Field(default_factory=list)
