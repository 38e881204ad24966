"""
FastAPI Application Entry Point
主應用程式入口（橋梁健康監測資料 API）
"""
import logging
from http import HTTPStatus
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from config import CORS_ORIGINS, API_PREFIX, API_VERSION, LOG_LEVEL

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# 匯入 routers
from api.routes import (
    sensor_data_router,
    devices_router,
    stats_router,
)
from models.response import ErrorResponse
from services.device_store import DeviceNotFound
from services.source import SourceUnavailable

# 建立 FastAPI 應用
app = FastAPI(
    title="Bridge Health Monitoring Backend",
    description="橋梁感測 CSV 資料擷取與時間窗 API",
    version=API_VERSION,
    docs_url=f"{API_PREFIX}/docs",
    redoc_url=f"{API_PREFIX}/redoc",
    openapi_url=f"{API_PREFIX}/openapi.json",
)

# CORS 設定（允許本地開發）
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 註冊路由
app.include_router(sensor_data_router)
app.include_router(devices_router)
app.include_router(stats_router)


# 錯誤回應統一為 {success: false, error, message}
def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(),
    )


@app.exception_handler(SourceUnavailable)
async def source_unavailable_handler(request: Request, exc: SourceUnavailable):
    logger.warning(f"[API] {request.url.path}: {exc}")
    return _error_response(404, "No real CSV data available", str(exc))


@app.exception_handler(DeviceNotFound)
async def device_not_found_handler(request: Request, exc: DeviceNotFound):
    return _error_response(404, "Device not found", str(exc) or "Device not found")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        error = str(exc.detail.get("error", HTTPStatus(exc.status_code).phrase))
        message = str(exc.detail.get("message", ""))
    else:
        error = HTTPStatus(exc.status_code).phrase
        message = str(exc.detail)
    return _error_response(exc.status_code, error, message)


# 基本健康檢查端點
@app.get("/health")
async def health_check():
    """
    健康檢查端點
    """
    return {
        "status": "ok",
        "service": "bridge-health-backend",
        "version": API_VERSION
    }


@app.get("/")
async def root():
    """
    根端點
    """
    return {
        "message": "Bridge Health Monitoring Backend API",
        "docs": f"{API_PREFIX}/docs",
        "version": API_VERSION
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
