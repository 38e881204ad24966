"""
Response Models
API 回應格式

成功: {success: true, data, metadata}
失敗: {success: false, error, message}
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from .device import DeviceSummary
from .sample import SensorSample
from .stats import SampleStats, SpectrumBin


class SensorDataMetadata(BaseModel):
    """資料來源與篩選資訊"""
    source: str = Field(..., description="資料來源說明")
    filenames: List[str] = Field(default_factory=list, description="讀取的檔案")
    vocabulary: Optional[str] = Field(None, description="CSV 欄位格式（device / generic）")
    totalPoints: int = Field(..., description="解析出的總筆數")
    recentPoints: int = Field(..., description="時間窗內筆數")
    skippedRows: int = Field(0, description="格式錯誤或無數值而略過的列數")
    timeframe: str = Field(..., description="時間窗說明")
    lastUpdate: str = Field(..., description="回應產生時間 (ISO)")
    latestDataTime: Optional[str] = Field(None, description="最新一筆資料時間 (ISO)")
    device: Optional[DeviceSummary] = None


class SensorDataResponse(BaseModel):
    success: bool = True
    data: List[SensorSample]
    metadata: SensorDataMetadata


class SensorStatsResponse(BaseModel):
    success: bool = True
    stats: Dict[str, SampleStats]
    metadata: SensorDataMetadata


class SpectrumResponse(BaseModel):
    success: bool = True
    field: str
    bins: List[SpectrumBin]
    metadata: SensorDataMetadata


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
