# 路由汇总
from fastapi import APIRouter
from app.api.v1.endpoints import pricing

api_router = APIRouter()

# 挂载蓝绿价格模块 (访问地址: /pricing/...)
api_router.include_router(pricing.router, prefix="/pricing", tags=["蓝绿价格模块"])
