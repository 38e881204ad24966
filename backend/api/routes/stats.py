"""
Stats API Routes
服務統計端點
"""
from fastapi import APIRouter

from services.core import CoreService

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("")
async def get_stats():
    """
    取得統計資訊

    Returns:
        dict: 請求數、失敗數、解析筆數與裝置統計
    """
    core = CoreService.get_instance()
    return core.get_stats()
