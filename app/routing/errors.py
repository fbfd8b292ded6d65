from __future__ import annotations


class RoutingError(Exception):
    """路由模块异常基类。"""


class ConfigurationError(RoutingError):
    """路由配置缺失或格式错误（启动期由兜底配置恢复，不致命）。"""


class InvalidVariantError(RoutingError, ValueError):
    """强制版本请求给出了 blue/green 以外的值。"""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f'Invalid version {value!r}. Must be "blue" or "green"')


class DataUnavailableError(RoutingError):
    """某个版本的价格数据缺失或损坏。"""

    def __init__(self, variant: str, reason: str = ""):
        self.variant = variant
        self.reason = reason
        message = f"Failed to load {variant} pricing data"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnknownRuleError(RoutingError):
    """priority 中出现了没有对应 evaluator 的规则名。"""

    def __init__(self, rule_name: str):
        self.rule_name = rule_name
        super().__init__(f"Unknown routing rule: {rule_name}")
