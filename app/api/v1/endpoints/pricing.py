"""
蓝绿价格 API 端点

- 价格读取：按路由规则选择 blue/green，返回对应价格数据 + routing 元信息
- 强制版本：跳过规则直接使用指定版本（统计与 sticky cookie 与正常路径一致）
- 统计 / 重置 / 健康检查 / 路由解释
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from app.api.deps import get_pricing_service, get_request_context
from app.core.config import settings
from app.routing.context import RequestContext
from app.routing.enums import Variant
from app.routing.errors import DataUnavailableError, InvalidVariantError
from app.schemas.pricing_schema import (
    ApiEnvelope,
    ErrorDetail,
    ErrorEnvelope,
    ExplainData,
    MessageEnvelope,
    PricingPayload,
    ResponseMeta,
    RoutingInfo,
    StatsData,
    TraceStepOut,
)
from app.services.pricing_service import PricingService

router = APIRouter()


def _json(model, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def _error(message: str, status_code: int, exc: Exception | None = None) -> JSONResponse:
    details = None
    if exc is not None and not settings.is_production:
        details = str(exc)
    return _json(ErrorEnvelope(error=ErrorDetail(message=message, details=details)), status_code)


def _serve(
    service: PricingService,
    ctx: RequestContext,
    forced: Variant | None,
    error_message: str,
) -> JSONResponse:
    start = time.perf_counter()
    routed = service.route(ctx, forced_variant=forced)
    decision = routed.decision

    try:
        payload = PricingPayload.model_validate(service.build_payload(decision))
    except (DataUnavailableError, ValidationError) as exc:
        logger.error(f"[PRICING_ERROR] version={decision.variant.value}: {exc}")
        response = _error(error_message, 500, exc)
    else:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        tag = "[PRICING_FORCED]" if decision.forced else "[PRICING]"
        logger.info(
            f"{tag} Version: {decision.variant.value}, Client: {decision.client_id}, "
            f"Reason: {decision.reason}, Response Time: {elapsed_ms}ms"
        )
        meta = ResponseMeta(response_time=elapsed_ms, forced=True if decision.forced else None)
        response = _json(ApiEnvelope[PricingPayload](data=payload, meta=meta))

    # 路由决策有效，即便数据读取失败也写 sticky cookie
    if routed.cookie is not None:
        routed.cookie.apply(response)
    return response


@router.get("", response_model=ApiEnvelope[PricingPayload], summary="按路由规则获取价格数据")
def get_pricing(
    ctx: RequestContext = Depends(get_request_context),
    service: PricingService = Depends(get_pricing_service),
):
    return _serve(service, ctx, None, "Failed to retrieve pricing data")


@router.get("/version/{version}", response_model=ApiEnvelope[PricingPayload], summary="强制获取指定版本")
def get_specific_version(
    version: str,
    ctx: RequestContext = Depends(get_request_context),
    service: PricingService = Depends(get_pricing_service),
):
    try:
        forced = Variant.parse(version)
    except InvalidVariantError as exc:
        return _error(str(exc), 400)
    return _serve(service, ctx, forced, "Failed to retrieve specific version")


@router.get("/stats", response_model=ApiEnvelope[StatsData], summary="分流统计")
def get_stats(service: PricingService = Depends(get_pricing_service)):
    try:
        data = StatsData.model_validate(service.get_stats())
    except Exception as exc:
        logger.exception(f"[STATS_ERROR] {exc}")
        return _error("Failed to retrieve statistics", 500)
    return _json(ApiEnvelope[StatsData](data=data))


@router.post("/reset-stats", response_model=MessageEnvelope, summary="重置分流统计")
def reset_stats(service: PricingService = Depends(get_pricing_service)):
    service.reset_stats()
    return _json(MessageEnvelope(message="Statistics reset successfully"))


@router.get("/health", summary="健康检查（两个版本数据均可读取）")
def get_health(service: PricingService = Depends(get_pricing_service)):
    health = service.health_check()
    healthy = health["status"] == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"success": healthy, "data": health, "meta": ResponseMeta().model_dump(by_alias=True, exclude_none=True)},
    )


@router.get("/explain", response_model=ApiEnvelope[ExplainData], summary="解释当前请求的路由过程（不计入统计）")
def explain_routing(
    ctx: RequestContext = Depends(get_request_context),
    service: PricingService = Depends(get_pricing_service),
):
    explanation = service.explain(ctx)
    data = ExplainData(
        routing=RoutingInfo.model_validate(explanation.decision.to_routing_dict()),
        steps=[
            TraceStepOut(step=s.step, outcome=s.outcome, version=s.variant.value if s.variant else None)
            for s in explanation.steps
        ],
    )
    return _json(ApiEnvelope[ExplainData](data=data))
