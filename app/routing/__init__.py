"""
蓝绿路由模块

提供分桶哈希、路由规则、会话粘滞、路由决策引擎与分流统计的核心实现。
按需导入，避免导入 `app.routing.enums` 等轻量子模块时连带加载整个引擎。
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "CookieDirective",
    "RequestContext",
    "RoutingConfig",
    "RoutingDecision",
    "RoutingEngine",
    "RoutingReason",
    "RuleKind",
    "StatsAggregator",
    "StatsSnapshot",
    "StickySessionManager",
    "Variant",
]


_LAZY_IMPORTS = {
    "CookieDirective": (".sticky", "CookieDirective"),
    "RequestContext": (".context", "RequestContext"),
    "RoutingConfig": (".config", "RoutingConfig"),
    "RoutingDecision": (".engine", "RoutingDecision"),
    "RoutingEngine": (".engine", "RoutingEngine"),
    "RoutingReason": (".enums", "RoutingReason"),
    "RuleKind": (".enums", "RuleKind"),
    "StatsAggregator": (".stats", "StatsAggregator"),
    "StatsSnapshot": (".stats", "StatsSnapshot"),
    "StickySessionManager": (".sticky", "StickySessionManager"),
    "Variant": (".enums", "Variant"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_IMPORTS:
        raise AttributeError(name)
    module_path, attr = _LAZY_IMPORTS[name]
    from importlib import import_module

    module = import_module(module_path, __name__)
    return getattr(module, attr)
