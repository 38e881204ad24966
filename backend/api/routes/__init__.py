"""
API Routes Package
"""

# 匯出所有 router
from .sensor_data import router as sensor_data_router
from .devices import router as devices_router
from .stats import router as stats_router

__all__ = [
    "sensor_data_router",
    "devices_router",
    "stats_router",
]
