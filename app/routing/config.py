"""
路由配置

RoutingConfig 是启动时组装一次、进程内只读的不可变快照。
组装优先级：规则文件 < 环境变量覆盖；校验失败时回退到兜底配置，不阻断启动。
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.config import Settings, settings as default_settings
from app.routing.enums import RuleKind
from app.routing.errors import ConfigurationError

DEFAULT_STICKY_MAX_AGE_MS = 86_400_000  # 24h

FALLBACK_RULES: Dict[str, Any] = {
    "routingRules": {
        "percentage": {"enabled": True, "blue": 70, "green": 30},
        "header": {"enabled": True, "headerName": "X-Version", "blueValue": "blue", "greenValue": "green"},
        "cookie": {"enabled": True, "cookieName": "pricing-version", "maxAge": DEFAULT_STICKY_MAX_AGE_MS},
        "ip": {"enabled": True, "blueIps": [], "greenIps": []},
    },
    "stickySession": {"enabled": True, "cookieName": "session-version"},
    "priority": ["header", "cookie", "ip", "percentage"],
}


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class HeaderRuleConfig(_FrozenModel):
    enabled: bool = False
    header_name: str = Field("X-Version", alias="headerName", min_length=1)
    blue_value: str = Field("blue", alias="blueValue")
    green_value: str = Field("green", alias="greenValue")


class CookieRuleConfig(_FrozenModel):
    enabled: bool = False
    cookie_name: str = Field("pricing-version", alias="cookieName", min_length=1)
    max_age_ms: Optional[int] = Field(default=None, alias="maxAge", gt=0)


class IpRuleConfig(_FrozenModel):
    enabled: bool = False
    blue_ips: Tuple[str, ...] = Field(default=(), alias="blueIps")
    green_ips: Tuple[str, ...] = Field(default=(), alias="greenIps")


class PercentageRuleConfig(_FrozenModel):
    enabled: bool = False
    blue: int = Field(70, ge=0, le=100)
    green: int = Field(30, ge=0, le=100)


class StickySessionConfig(_FrozenModel):
    enabled: bool = False
    cookie_name: str = Field("session-version", alias="cookieName", min_length=1)
    max_age_ms: int = Field(DEFAULT_STICKY_MAX_AGE_MS, alias="maxAge", gt=0)


class RoutingConfig(_FrozenModel):
    priority: Tuple[str, ...]
    header: HeaderRuleConfig = Field(default_factory=HeaderRuleConfig)
    cookie: CookieRuleConfig = Field(default_factory=CookieRuleConfig)
    ip: IpRuleConfig = Field(default_factory=IpRuleConfig)
    percentage: PercentageRuleConfig = Field(default_factory=PercentageRuleConfig)
    sticky_session: StickySessionConfig = Field(default_factory=StickySessionConfig, alias="stickySession")

    @field_validator("priority")
    @classmethod
    def _priority_not_empty(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        cleaned = tuple(str(x).strip() for x in v if str(x).strip())
        if not cleaned:
            raise ValueError("priority 不能为空")
        return cleaned

    def rule(self, kind: RuleKind) -> _FrozenModel:
        return getattr(self, kind.value)

    def enabled_rules(self) -> list[str]:
        names = [k.value for k in RuleKind if self.rule(k).enabled]
        if self.sticky_session.enabled:
            names.append("stickySession")
        return names


def load_routing_config(
    path: str | Path | None = None,
    settings: Settings | None = None,
) -> RoutingConfig:
    """读取规则文件并应用环境变量覆盖；任何失败都回退到兜底配置。"""
    settings = settings or default_settings
    rules_path = Path(path or settings.ROUTING_RULES_PATH)

    try:
        raw = _read_rules_file(rules_path)
        config = build_routing_config(raw, settings)
    except ConfigurationError as exc:
        logger.error(f"[ConfigLoader] 加载路由规则失败，使用兜底配置: {exc}")
        return fallback_routing_config(settings)

    logger.info(
        f"[ConfigLoader] 路由规则已加载: path={rules_path}, priority={list(config.priority)}, "
        f"split={config.percentage.blue}/{config.percentage.green}"
    )
    return config


def fallback_routing_config(settings: Settings | None = None) -> RoutingConfig:
    """兜底配置：percentage 70/30 + header/cookie/ip 占位规则。"""
    settings = settings or default_settings
    try:
        return build_routing_config(copy.deepcopy(FALLBACK_RULES), settings)
    except ConfigurationError as exc:
        # 环境变量本身不合法：忽略覆盖，直接使用内置兜底
        logger.error(f"[ConfigLoader] 环境变量覆盖不合法，已忽略: {exc}")
        return build_routing_config(copy.deepcopy(FALLBACK_RULES), None)


def build_routing_config(raw: Dict[str, Any], settings: Settings | None) -> RoutingConfig:
    if not isinstance(raw, dict):
        raise ConfigurationError("规则文件顶层必须是 JSON 对象")

    rules = raw.get("routingRules")
    if not isinstance(rules, dict):
        raise ConfigurationError("缺少 routingRules 配置")

    data: Dict[str, Any] = {kind.value: _section(rules, kind.value) for kind in RuleKind}
    sticky = _section(raw, "stickySession")
    # sticky cookie 未单独配置 maxAge 时沿用 cookie 规则的 maxAge
    if "maxAge" not in sticky and data["cookie"].get("maxAge"):
        sticky["maxAge"] = data["cookie"]["maxAge"]
    data["stickySession"] = sticky
    data["priority"] = raw.get("priority") or []

    if settings is not None:
        _apply_env_overrides(data, settings)

    try:
        config = RoutingConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc

    split_total = config.percentage.blue + config.percentage.green
    if split_total != 100:
        if settings is not None and settings.STRICT_PERCENTAGE_SPLIT:
            raise ConfigurationError(f"percentage blue+green 必须等于 100，当前为 {split_total}")
        # 只按 blue 阈值分流，green 值不参与计算
        logger.warning(
            f"[ConfigLoader] percentage blue+green={split_total} != 100，"
            f"实际分流按 blue={config.percentage.blue}% 阈值执行"
        )
    return config


def _read_rules_file(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"无法读取规则文件 {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"规则文件不是合法 JSON {path}: {exc}") from exc


def _section(parent: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = parent.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{name} 配置必须是 JSON 对象，当前为 {type(value).__name__}")
    return dict(value)


def _apply_env_overrides(data: Dict[str, Any], settings: Settings) -> None:
    if settings.BLUE_PERCENTAGE is not None:
        data["percentage"]["blue"] = settings.BLUE_PERCENTAGE
    if settings.GREEN_PERCENTAGE is not None:
        data["percentage"]["green"] = settings.GREEN_PERCENTAGE

    toggles = {
        "header": settings.ENABLE_HEADER_ROUTING,
        "cookie": settings.ENABLE_COOKIE_ROUTING,
        "ip": settings.ENABLE_IP_ROUTING,
        "percentage": settings.ENABLE_PERCENTAGE_ROUTING,
    }
    for name, enabled in toggles.items():
        if enabled is not None:
            data[name]["enabled"] = enabled
