"""
路由规则

每种规则一个纯函数：(RequestContext, 规则配置) -> Variant | None。
返回 None 表示未命中，交给下一条规则。
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from app.routing.config import (
    CookieRuleConfig,
    HeaderRuleConfig,
    IpRuleConfig,
    PercentageRuleConfig,
)
from app.routing.context import RequestContext
from app.routing.enums import RoutingReason, RuleKind, Variant
from app.routing.hashing import bucket

RuleEvaluator = Callable[[RequestContext, object], Optional[Variant]]


def evaluate_header(ctx: RequestContext, config: HeaderRuleConfig) -> Optional[Variant]:
    value = ctx.header(config.header_name)
    if value is None:
        return None
    if value == config.blue_value:
        return Variant.blue
    if value == config.green_value:
        return Variant.green
    return None


def evaluate_cookie(ctx: RequestContext, config: CookieRuleConfig) -> Optional[Variant]:
    return Variant.match(ctx.cookie(config.cookie_name))


def evaluate_ip(ctx: RequestContext, config: IpRuleConfig) -> Optional[Variant]:
    # 仅精确匹配，不支持 CIDR
    if ctx.client_ip in config.blue_ips:
        return Variant.blue
    if ctx.client_ip in config.green_ips:
        return Variant.green
    return None


def evaluate_percentage(ctx: RequestContext, config: PercentageRuleConfig) -> Variant:
    # 只比较 blue 阈值；green 不参与计算
    if bucket(ctx.client_identifier) < config.blue:
        return Variant.blue
    return Variant.green


EVALUATORS: Dict[RuleKind, RuleEvaluator] = {
    RuleKind.header: evaluate_header,
    RuleKind.cookie: evaluate_cookie,
    RuleKind.ip: evaluate_ip,
    RuleKind.percentage: evaluate_percentage,
}


def reason_for(kind: RuleKind, config: object) -> str:
    """规则命中时的 reason 标签。"""
    if kind is RuleKind.header:
        return f"{RoutingReason.header.value}-{config.header_name}"
    if kind is RuleKind.cookie:
        return f"{RoutingReason.cookie.value}-{config.cookie_name}"
    if kind is RuleKind.ip:
        return RoutingReason.ip_based.value
    return RoutingReason.percentage_split.value
