"""
Backend Configuration
配置參數（資料來源、時間窗、解析策略等）
"""
import os
from typing import Optional


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


# 時間窗設定（分鐘）
DEFAULT_MINUTES: int = _env_int("BHM_DEFAULT_MINUTES", 1)
MAX_MINUTES: int = _env_int("BHM_MAX_MINUTES", 10)  # 限制回應大小

# 每次請求合併的最新檔案數（裝置每 10 分鐘上傳一個檔案）
DEFAULT_FILE_COUNT: int = _env_int("BHM_DEFAULT_FILE_COUNT", 1)
MAX_FILE_COUNT: int = _env_int("BHM_MAX_FILE_COUNT", 3)

# 只有時間（HH:MM:SS）的時間戳處理方式: "today" | "rollback"
BARE_TIME_POLICY: str = os.getenv("BHM_BARE_TIME_POLICY", "today")

# 資料來源設定
CSV_DATA_DIR: str = os.getenv("BHM_CSV_DATA_DIR", "data")
SOURCE_STRATEGIES: list[str] = [
    s.strip().lower()
    for s in os.getenv("BHM_SOURCE_STRATEGIES", "local,drive").split(",")
    if s.strip()
]
GOOGLE_DRIVE_API_KEY: Optional[str] = os.getenv("GOOGLE_DRIVE_API_KEY") or None
FETCH_TIMEOUT_SEC: float = _env_float("BHM_FETCH_TIMEOUT_SEC", 10.0)

# 分析設定
SPECTRUM_MAX_POINTS: int = _env_int("BHM_SPECTRUM_MAX_POINTS", 50)

# Logging
LOG_LEVEL: str = os.getenv("BHM_LOG_LEVEL", "INFO").upper()

# CORS 設定
CORS_ORIGINS: list[str] = [
    "http://localhost:3000",  # Next.js dashboard
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

# API 設定
API_PREFIX: str = "/api"
API_VERSION: str = "v1"
