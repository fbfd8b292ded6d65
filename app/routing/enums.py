from __future__ import annotations

from enum import Enum

from app.routing.errors import InvalidVariantError


class Variant(str, Enum):
    blue = "blue"
    green = "green"

    @classmethod
    def parse(cls, value: object) -> "Variant":
        """严格解析：只接受 "blue" / "green"（区分大小写），其余一律拒绝。"""
        if isinstance(value, Variant):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value == value:
                    return member
        raise InvalidVariantError(value)

    @classmethod
    def match(cls, value: object) -> "Variant | None":
        """宽松版本：非法值返回 None，用于 cookie 这类不可信输入。"""
        try:
            return cls.parse(value)
        except InvalidVariantError:
            return None


DEFAULT_VARIANT = Variant.blue


class RuleKind(str, Enum):
    header = "header"
    cookie = "cookie"
    ip = "ip"
    percentage = "percentage"


class RoutingReason(str, Enum):
    sticky_session = "sticky-session"
    header = "header"  # header-<headerName>
    cookie = "cookie"  # cookie-<cookieName>
    ip_based = "ip-based"
    percentage_split = "percentage-split"
    default_fallback = "default-fallback"
    forced_version = "forced-version"
