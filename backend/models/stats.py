"""
Statistics Models
統計模型
"""
from pydantic import BaseModel, Field
from typing import Optional


class SampleStats(BaseModel):
    """
    單一欄位的樣本統計
    用於時間窗內的即時監控
    """
    count: int = Field(..., description="樣本數量")
    mean: float = Field(..., description="平均值")
    std: float = Field(..., description="標準差")
    min_value: float = Field(..., description="最小值")
    max_value: float = Field(..., description="最大值")
    median: Optional[float] = Field(None, description="中位數")

    class Config:
        json_schema_extra = {
            "example": {
                "count": 120,
                "mean": 25.4,
                "std": 0.3,
                "min_value": 24.9,
                "max_value": 26.1,
                "median": 25.38
            }
        }


class SpectrumBin(BaseModel):
    """頻譜單一頻帶"""
    index: int = Field(..., description="頻帶索引")
    frequency_hz: Optional[float] = Field(None, description="頻率 (Hz)，無法估計取樣率時為 None")
    magnitude: float = Field(..., description="振幅（已除以 FFT 長度）")
