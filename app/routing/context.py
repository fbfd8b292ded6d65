from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Mapping, Optional

from starlette.requests import Request

from app.routing.hashing import client_identifier

LOOPBACK_V4 = "127.0.0.1"
_V4_MAPPED_PREFIX = "::ffff:"


def normalize_ip(ip: Optional[str]) -> str:
    """规范化客户端 IP：去掉 IPv4-mapped IPv6 前缀，::1 视为本机回环。"""
    if not ip:
        return ""
    ip = ip.strip()
    if ip.lower().startswith(_V4_MAPPED_PREFIX):
        return ip[len(_V4_MAPPED_PREFIX):]
    if ip == "::1":
        return LOOPBACK_V4
    return ip


@dataclass(frozen=True)
class RequestContext:
    """单次请求的只读视图，构造后不再修改。"""

    client_ip: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    user_agent: str = ""

    def __post_init__(self) -> None:
        # header 名统一小写，查找时大小写不敏感
        lowered = {str(k).lower(): str(v) for k, v in dict(self.headers).items()}
        object.__setattr__(self, "headers", MappingProxyType(lowered))
        object.__setattr__(self, "cookies", MappingProxyType(dict(self.cookies)))
        object.__setattr__(self, "client_ip", normalize_ip(self.client_ip))

    @classmethod
    def build(
        cls,
        client_ip: str = "",
        headers: Optional[Mapping[str, str]] = None,
        cookies: Optional[Mapping[str, str]] = None,
        user_agent: Optional[str] = None,
    ) -> "RequestContext":
        headers = dict(headers or {})
        if user_agent is None:
            user_agent = next((v for k, v in headers.items() if k.lower() == "user-agent"), "")
        return cls(client_ip=client_ip, headers=headers, cookies=dict(cookies or {}), user_agent=user_agent)

    @classmethod
    def from_request(cls, request: Request, trust_proxy: bool = True) -> "RequestContext":
        client_ip = ""
        if trust_proxy:
            forwarded = request.headers.get("x-forwarded-for", "")
            client_ip = forwarded.split(",")[0].strip()
        if not client_ip and request.client is not None:
            client_ip = request.client.host or ""
        return cls.build(
            client_ip=client_ip,
            headers=dict(request.headers),
            cookies=dict(request.cookies),
            user_agent=request.headers.get("user-agent", ""),
        )

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def cookie(self, name: str) -> Optional[str]:
        return self.cookies.get(name)

    @cached_property
    def client_identifier(self) -> str:
        return client_identifier(self.client_ip, self.user_agent)
