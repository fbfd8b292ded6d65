# 【入口】整个程序的启动点
import os
import platform
import sys
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.deps import get_pricing_service
from app.api.v1.router import api_router
from app.core.config import settings

_STARTED_AT = time.time()


# ========================================
# Loguru 日志配置
# ========================================
def setup_logger():
    """配置 loguru 日志系统"""
    # 移除默认的 handler
    logger.remove()

    # 添加控制台输出（彩色）
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL,
        colorize=True,
    )

    # 如果配置了日志文件，添加文件输出
    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation="100 MB",  # 日志文件达到 100MB 时轮转
            retention="10 days",  # 保留最近 10 天的日志
            compression="zip",  # 压缩旧日志
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=settings.LOG_LEVEL,
        )

    logger.info("Loguru 日志系统初始化完成")


# 初始化日志
setup_logger()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ========================================
# FastAPI 应用配置
# ========================================
app = FastAPI(
    title=settings.APP_NAME,
    description="基于请求头 / Cookie / IP / 百分比规则的蓝绿价格分流服务",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# 注册路由（兼容现有前端：不加 /api/v1 前缀）
app.include_router(api_router)


@app.middleware("http")
async def request_logger(request: Request, call_next):
    """请求日志：ENABLE_REQUEST_LOGGING 开启时记录；生产环境跳过健康检查"""
    if not settings.ENABLE_REQUEST_LOGGING:
        return await call_next(request)
    if settings.is_production and request.url.path == "/pricing/health":
        return await call_next(request)

    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    client_ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent", "unknown")
    if len(user_agent) > 50:
        user_agent = user_agent[:50] + "..."
    logger.info(
        f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f} ms - {client_ip} - {user_agent}"
    )
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "error": {
                    "message": "Endpoint not found",
                    "path": request.url.path,
                    "method": request.method,
                },
                "timestamp": _now_iso(),
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": {"message": str(exc.detail)}, "timestamp": _now_iso()},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"未处理异常: {request.method} {request.url.path}: {exc}")
    error = {"message": str(exc) or "Internal server error"}
    if not settings.is_production:
        error["details"] = repr(exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": error, "timestamp": _now_iso()},
    )


@app.on_event("startup")
async def startup_event():
    """应用启动事件"""
    service = get_pricing_service()
    summary = service.routing_summary()
    logger.info("=" * 60)
    logger.info("蓝绿价格分流服务正在启动...")
    logger.info(f"运行环境: {settings.ENVIRONMENT}")
    logger.info(f"日志级别: {settings.LOG_LEVEL}")
    logger.info(
        f"Blue/Green Split: {summary['percentageSplit']['blue']}%/{summary['percentageSplit']['green']}%"
    )
    logger.info(f"Enabled Rules: {', '.join(summary['enabledRules'])}")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    """应用关闭事件"""
    logger.info("蓝绿价格分流服务正在关闭...")


@app.get("/")
def health_check():
    """服务信息端点"""
    return {
        "success": True,
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": _now_iso(),
        "environment": settings.ENVIRONMENT,
        "endpoints": {
            "pricing": "/pricing",
            "stats": "/pricing/stats",
            "health": "/pricing/health",
        },
    }


@app.get("/system")
def system_info():
    """进程信息端点"""
    return {
        "success": True,
        "data": {
            "uptime": round(time.time() - _STARTED_AT, 3),
            "environment": settings.ENVIRONMENT,
            "pythonVersion": platform.python_version(),
            "platform": sys.platform,
            "arch": platform.machine(),
            "pid": os.getpid(),
        },
        "timestamp": _now_iso(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT)
