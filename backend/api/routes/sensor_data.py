"""
Sensor Data API Routes
感測資料端點（最近 N 分鐘、統計、頻譜、上傳解析）
"""
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel
from typing import Optional
import asyncio
import logging

from config import SPECTRUM_MAX_POINTS
from models.device import DeviceSummary
from models.response import (
    SensorDataMetadata,
    SensorDataResponse,
    SensorStatsResponse,
    SpectrumResponse,
)
from services.analysis import CHART_FIELDS, numeric_fields, spectrum, summarize
from services.core import CoreService, RecentData
from services.csv_parser import CsvVocabulary, DEVICE_FIELDS, epoch_ms_to_iso, parse_csv_report
from services.device_store import DeviceNotFound
from services.source import SourceUnavailable
from services.window import current_time_ms

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sensor-data", tags=["sensor-data"])

SPECTRUM_FIELDS = tuple(DEVICE_FIELDS) + CHART_FIELDS


class ParseRequest(BaseModel):
    """上傳 CSV 內容"""
    csv_content: Optional[str] = None


def _metadata(recent: RecentData, now_ms: int) -> SensorDataMetadata:
    ingest = recent.ingest
    latest = recent.samples[0].timestamp if recent.samples else None
    return SensorDataMetadata(
        source=f"{ingest.source} ({ingest.device.name})",
        filenames=ingest.filenames,
        vocabulary=ingest.vocabulary.value if ingest.vocabulary else None,
        totalPoints=recent.total_points,
        recentPoints=len(recent.samples),
        skippedRows=ingest.skipped_rows,
        timeframe=f"{recent.minutes} minute(s)",
        lastUpdate=epoch_ms_to_iso(now_ms),
        latestDataTime=epoch_ms_to_iso(latest) if latest is not None else None,
        device=DeviceSummary.from_device(ingest.device),
    )


async def _get_recent(device: Optional[str], minutes: Optional[str],
                      files: Optional[str], now_ms: int) -> RecentData:
    """
    在 thread 中讀取資料（資料來源為阻塞式 I/O）

    Raises:
        SourceUnavailable / DeviceNotFound: 交由 main 的 exception handler 處理
        HTTPException 500: 其他錯誤
    """
    core = CoreService.get_instance()
    try:
        return await asyncio.to_thread(core.get_recent, device, minutes, files, now_ms)
    except (SourceUnavailable, DeviceNotFound):
        raise
    except Exception as e:
        logger.exception(f"[API] Sensor data request failed: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to get real CSV data", "message": str(e)},
        )


@router.get("", response_model=SensorDataResponse)
async def get_sensor_data(
    minutes: Optional[str] = Query(None, description="時間窗（分鐘），預設 1，上限 MAX_MINUTES"),
    device: Optional[str] = Query(None, description="裝置 ID，預設為預設裝置"),
    files: Optional[str] = Query(None, description="合併的最新檔案數"),
):
    """
    取得最近 N 分鐘的感測資料（最新在前）

    Returns:
        SensorDataResponse

    Raises:
        404: 裝置不存在或取不到 CSV（不會以模擬資料代替）
        500: 其他錯誤
    """
    now_ms = current_time_ms()
    recent = await _get_recent(device, minutes, files, now_ms)
    logger.info(
        f"[API] Returning {len(recent.samples)}/{recent.total_points} samples "
        f"from last {recent.minutes} minute(s) for {recent.ingest.device.name}"
    )
    return SensorDataResponse(data=recent.samples, metadata=_metadata(recent, now_ms))


@router.post("/parse", response_model=SensorDataResponse)
async def parse_uploaded_csv(req: ParseRequest):
    """
    解析上傳的 CSV 內容（不做時間窗篩選）

    Raises:
        HTTPException 400: 沒有內容
    """
    if not req.csv_content or not req.csv_content.strip():
        raise HTTPException(
            status_code=400,
            detail={"error": "No CSV content provided", "message": "csv_content is required"},
        )

    now_ms = current_time_ms()
    report = parse_csv_report(req.csv_content, now_ms=now_ms)
    latest = max((s.timestamp for s in report.samples), default=None)
    metadata = SensorDataMetadata(
        source="User Provided",
        filenames=["user-upload.csv"],
        vocabulary=report.vocabulary.value if report.vocabulary else None,
        totalPoints=len(report.samples),
        recentPoints=len(report.samples),
        skippedRows=report.discarded_rows,
        timeframe="all",
        lastUpdate=epoch_ms_to_iso(now_ms),
        latestDataTime=epoch_ms_to_iso(latest) if latest is not None else None,
    )
    return SensorDataResponse(data=report.samples, metadata=metadata)


@router.get("/stats", response_model=SensorStatsResponse)
async def get_sensor_stats(
    minutes: Optional[str] = Query(None),
    device: Optional[str] = Query(None),
    files: Optional[str] = Query(None),
):
    """
    時間窗內各欄位統計（count, mean, std, min, max, median）
    """
    now_ms = current_time_ms()
    recent = await _get_recent(device, minutes, files, now_ms)
    fields = numeric_fields(recent.ingest.vocabulary)
    return SensorStatsResponse(
        stats=summarize(recent.samples, fields),
        metadata=_metadata(recent, now_ms),
    )


@router.get("/spectrum", response_model=SpectrumResponse)
async def get_sensor_spectrum(
    field: Optional[str] = Query(None, description="欄位，預設 Device 格式為 z，其餘為 vibration"),
    minutes: Optional[str] = Query(None),
    device: Optional[str] = Query(None),
    files: Optional[str] = Query(None),
    max_points: int = Query(SPECTRUM_MAX_POINTS, ge=1, le=1024),
):
    """
    時間窗內單一欄位的振幅頻譜

    Raises:
        HTTPException 400: 欄位名稱無效
    """
    if field is not None and field not in SPECTRUM_FIELDS:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid field", "message": f"Unknown field: {field}"},
        )

    now_ms = current_time_ms()
    recent = await _get_recent(device, minutes, files, now_ms)
    if field is None:
        field = "z" if recent.ingest.vocabulary is CsvVocabulary.DEVICE else "vibration"

    return SpectrumResponse(
        field=field,
        bins=spectrum(recent.samples, field, max_points=max_points),
        metadata=_metadata(recent, now_ms),
    )
