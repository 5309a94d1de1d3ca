"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import payments as payments_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from api.middleware.locale import LocaleMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.i18n import t
from core.logging_config import get_logger, configure_logging
from infrastructure.external.payments.vnpay_client import VnpayGatewayConfig


# 初始化日志：在入口处显式配置
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 商户配置缺失不阻止启动：仅回调部署可降级运行，请求级返回 400
    config = VnpayGatewayConfig.from_settings()
    missing = config.missing("tmn_code", "hash_secret", "payment_url", "return_url")
    if missing:
        logger.warning("vnpay_config_incomplete", missing=missing)
    else:
        logger.info(
            "vnpay_config_loaded",
            tmn_code=config.tmn_code,
            payment_url=config.payment_url,
            return_url=config.return_url,
        )
    yield
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="VNPay payment request signing and callback verification",
)

# 添加中间件（注意顺序：后添加的先执行）
# Request ID 在日志之前执行，为日志提供 request_id 与 client_ip
app.add_middleware(LoggingMiddleware)
app.add_middleware(LocaleMiddleware)
app.add_middleware(RequestIDMiddleware)

# CORS中间件（最外层）
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)

# 注册路由
app.include_router(payments_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc"
        },
        message=t("welcome")
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"}, message=t("health.ok"))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
