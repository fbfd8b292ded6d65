"""
服务模块入口。

注意：这里不要做“强导入”，导入 `app.services` 时不应连带加载路由引擎与价格存储。
"""

from __future__ import annotations

from typing import Any

__all__ = ["PricingService", "RoutedRequest"]


_LAZY_IMPORTS = {
    "PricingService": (".pricing_service", "PricingService"),
    "RoutedRequest": (".pricing_service", "RoutedRequest"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_IMPORTS:
        raise AttributeError(name)
    module_path, attr = _LAZY_IMPORTS[name]
    from importlib import import_module

    module = import_module(module_path, __name__)
    return getattr(module, attr)
