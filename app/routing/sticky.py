from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from starlette.responses import Response

from app.routing.config import StickySessionConfig
from app.routing.context import RequestContext
from app.routing.enums import Variant


@dataclass(frozen=True)
class CookieDirective:
    """写 sticky cookie 的指令，由 HTTP 层应用到响应上。"""

    name: str
    value: str
    max_age_ms: int
    http_only: bool = True
    secure: bool = False
    same_site: str = "lax"

    @property
    def max_age_seconds(self) -> int:
        return self.max_age_ms // 1000

    def apply(self, response: Response) -> None:
        response.set_cookie(
            key=self.name,
            value=self.value,
            max_age=self.max_age_seconds,
            httponly=self.http_only,
            secure=self.secure,
            samesite=self.same_site,
        )


class StickySessionManager:
    """会话粘滞：一旦分配了版本，后续请求直接沿用，跳过所有规则。"""

    def __init__(self, config: StickySessionConfig, secure: bool = False):
        self._config = config
        self._secure = secure

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def cookie_name(self) -> str:
        return self._config.cookie_name

    def check(self, ctx: RequestContext) -> Optional[Variant]:
        return Variant.match(ctx.cookie(self._config.cookie_name))

    def assign(self, variant: Variant) -> Optional[CookieDirective]:
        if not self._config.enabled:
            return None
        return CookieDirective(
            name=self._config.cookie_name,
            value=Variant.parse(variant).value,
            max_age_ms=self._config.max_age_ms,
            http_only=True,
            secure=self._secure,
            same_site="lax",
        )
