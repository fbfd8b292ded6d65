"""
价格数据存储

按版本读取 JSON 价格文件（blue-pricing.json / green-pricing.json），带 TTL 缓存与结构校验。
读取或校验失败统一抛 DataUnavailableError。
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger

from app.pricing.cache import TimedCache
from app.routing.enums import Variant
from app.routing.errors import DataUnavailableError

REQUIRED_FIELDS = ("version", "title", "plans")
REQUIRED_PLAN_FIELDS = ("id", "name", "price", "features")


def validate_pricing_data(data: Any) -> List[str]:
    """返回问题列表；空列表表示结构合法。"""
    if not isinstance(data, dict):
        return ["pricing data 必须是 JSON 对象"]

    problems: List[str] = []
    missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
    if missing:
        problems.append(f"缺少字段: {', '.join(missing)}")

    plans = data.get("plans")
    if not isinstance(plans, list) or not plans:
        problems.append("plans 必须是非空数组")
        return problems

    for plan in plans:
        if not isinstance(plan, dict):
            problems.append("plan 必须是 JSON 对象")
            continue
        # price 允许为 0（免费档）
        missing_plan = [f for f in REQUIRED_PLAN_FIELDS if plan.get(f) in (None, "", [])]
        if missing_plan:
            problems.append(f"plan {plan.get('id') or 'unknown'} 缺少字段: {', '.join(missing_plan)}")
    return problems


class PricingDataStore:
    def __init__(self, data_dir: str | Path, cache_seconds: int = 300):
        self._data_dir = Path(data_dir)
        self._cache: TimedCache[Dict[str, Any]] = TimedCache(cache_seconds)

    def path_for(self, variant: Variant) -> Path:
        return self._data_dir / f"{variant.value}-pricing.json"

    def get(self, variant: Variant) -> Dict[str, Any]:
        """返回该版本价格数据的副本（调用方可自由追加字段）。"""
        variant = Variant.parse(variant)
        data = self._cache.get(f"pricing-{variant.value}", lambda: self._load(variant))
        return json.loads(json.dumps(data))

    def available_versions(self) -> List[str]:
        return [v.value for v in Variant]

    def clear(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        keys = [str(k) for k in self._cache.keys()]
        return {
            "cacheSize": len(keys),
            "cachedVersions": keys,
            "cacheHitRate": self._cache.hit_rate(),
        }

    def _load(self, variant: Variant) -> Dict[str, Any]:
        path = self.path_for(variant)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.error(f"[PricingDataStore] 读取 {variant.value} 价格数据失败: {exc}")
            raise DataUnavailableError(variant.value, str(exc)) from exc

        if not isinstance(data, dict):
            raise DataUnavailableError(variant.value, "pricing data 必须是 JSON 对象")

        data["version"] = variant.value
        data["loadedAt"] = datetime.now(timezone.utc).isoformat()

        problems = validate_pricing_data(data)
        if problems:
            logger.error(f"[PricingDataStore] {variant.value} 价格数据不合法: {problems}")
            raise DataUnavailableError(variant.value, "; ".join(problems))
        return data
