"""
路由决策引擎

决策顺序：sticky session > priority 中已启用的规则 > 默认版本(blue)。
decide() 与 explain() 共用同一个解析过程，reason 不会与实际决策不一致。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple, Union

from loguru import logger

from app.routing.config import RoutingConfig
from app.routing.context import RequestContext
from app.routing.enums import DEFAULT_VARIANT, RoutingReason, RuleKind, Variant
from app.routing.errors import UnknownRuleError
from app.routing.hashing import fingerprint
from app.routing.rules import EVALUATORS, RuleEvaluator, reason_for
from app.routing.sticky import StickySessionManager


@dataclass(frozen=True)
class RoutingDecision:
    variant: Variant
    reason: str
    served_at: datetime
    client_id: str
    client_identifier: str
    forced: bool = False

    def to_routing_dict(self) -> Dict[str, str]:
        return {
            "version": self.variant.value,
            "servedAt": self.served_at.isoformat(),
            "clientId": self.client_id,
            "routingReason": self.reason,
        }


@dataclass(frozen=True)
class TraceStep:
    step: str
    outcome: str  # matched / miss / disabled / unknown
    variant: Optional[Variant] = None


@dataclass(frozen=True)
class RoutingExplanation:
    decision: RoutingDecision
    steps: List[TraceStep] = field(default_factory=list)


@dataclass(frozen=True)
class _CompiledRule:
    name: str
    kind: Optional[RuleKind]
    evaluator: Optional[RuleEvaluator]
    config: object = None
    enabled: bool = False


class RoutingEngine:
    def __init__(
        self,
        config: RoutingConfig,
        sticky: Optional[StickySessionManager] = None,
        default_variant: Variant = DEFAULT_VARIANT,
        clock: Callable[[], datetime] | None = None,
    ):
        self._config = config
        self._sticky = sticky or StickySessionManager(config.sticky_session)
        self._default_variant = default_variant
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rules: List[_CompiledRule] = self._compile(config)

    @property
    def config(self) -> RoutingConfig:
        return self._config

    @property
    def sticky(self) -> StickySessionManager:
        return self._sticky

    def decide(
        self,
        ctx: RequestContext,
        forced_variant: Union[Variant, str, None] = None,
    ) -> RoutingDecision:
        """对一次请求做出路由决策；forced_variant 非空时跳过全部规则。"""
        if forced_variant is not None:
            variant = Variant.parse(forced_variant)
            return self._make_decision(ctx, variant, RoutingReason.forced_version.value, forced=True)

        variant, reason = self._resolve(ctx, trace=None)
        return self._make_decision(ctx, variant, reason)

    def explain(self, ctx: RequestContext) -> RoutingExplanation:
        steps: List[TraceStep] = []
        variant, reason = self._resolve(ctx, trace=steps)
        return RoutingExplanation(decision=self._make_decision(ctx, variant, reason), steps=steps)

    def summary(self) -> Dict:
        return {
            "enabledRules": self._config.enabled_rules(),
            "priority": list(self._config.priority),
            "percentageSplit": {
                "blue": self._config.percentage.blue,
                "green": self._config.percentage.green,
            },
        }

    # ----------------- internal helpers -----------------

    def _resolve(
        self, ctx: RequestContext, trace: Optional[List[TraceStep]]
    ) -> Tuple[Variant, str]:
        if self._sticky.enabled:
            sticky = self._sticky.check(ctx)
            if trace is not None:
                trace.append(_step(RoutingReason.sticky_session.value, sticky))
            if sticky is not None:
                return sticky, RoutingReason.sticky_session.value

        for rule in self._rules:
            if rule.evaluator is None or not rule.enabled:
                if trace is not None:
                    outcome = "unknown" if rule.kind is None else "disabled"
                    trace.append(TraceStep(step=rule.name, outcome=outcome))
                continue

            variant = rule.evaluator(ctx, rule.config)
            if trace is not None:
                trace.append(_step(rule.name, variant))
            if variant is not None:
                return variant, reason_for(rule.kind, rule.config)

        return self._default_variant, RoutingReason.default_fallback.value

    def _make_decision(
        self, ctx: RequestContext, variant: Variant, reason: str, forced: bool = False
    ) -> RoutingDecision:
        identifier = ctx.client_identifier
        return RoutingDecision(
            variant=variant,
            reason=reason,
            served_at=self._clock(),
            client_id=fingerprint(identifier),
            client_identifier=identifier,
            forced=forced,
        )

    def _compile(self, config: RoutingConfig) -> List[_CompiledRule]:
        compiled: List[_CompiledRule] = []
        for name in config.priority:
            try:
                kind = RuleKind(name)
            except ValueError:
                # 未知规则按禁用处理，不影响启动
                logger.warning(f"[RoutingEngine] {UnknownRuleError(name)}，已跳过")
                compiled.append(_CompiledRule(name=name, kind=None, evaluator=None))
                continue

            rule_config = config.rule(kind)
            compiled.append(
                _CompiledRule(
                    name=name,
                    kind=kind,
                    evaluator=EVALUATORS[kind],
                    config=rule_config,
                    enabled=bool(rule_config.enabled),
                )
            )

        active = [r.name for r in compiled if r.enabled]
        logger.info(f"[RoutingEngine] 初始化完成: active_rules={active}, sticky={self._sticky.enabled}")
        return compiled


def _step(name: str, variant: Optional[Variant]) -> TraceStep:
    if variant is None:
        return TraceStep(step=name, outcome="miss")
    return TraceStep(step=name, outcome="matched", variant=variant)
