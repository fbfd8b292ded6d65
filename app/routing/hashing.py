import hashlib

from loguru import logger

BUCKET_COUNT = 100
IDENTIFIER_SEPARATOR = "-"


def hash32(s: str) -> int:
    """MD5 摘要的前 32 位（无符号整数）。

    不使用内置 hash()：它带进程级随机种子，跨进程/重启结果不一致。
    """
    d = hashlib.md5(s.encode("utf-8")).digest()
    h = 0
    for i in range(4):
        h = (h << 8) | d[i]
    return h


def bucket(identifier: str) -> int:
    """把标识映射到 [0, 99] 的分桶。"""
    return hash32(identifier) % BUCKET_COUNT


def client_identifier(client_ip: str, user_agent: str) -> str:
    """按 IP + User-Agent 拼接客户端标识，用于百分比分流与统计。"""
    ip = client_ip or ""
    ua = user_agent or ""
    if not ip and not ua:
        logger.warning("[HashBucketer] IP 与 User-Agent 均为空，分桶退化为固定值")
    return f"{ip}{IDENTIFIER_SEPARATOR}{ua}"


def fingerprint(identifier: str, length: int = 12) -> str:
    """对外展示用的短客户端 ID（不暴露原始 IP / UA）。"""
    return hashlib.md5(identifier.encode("utf-8")).hexdigest()[:length]
