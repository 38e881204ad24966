"""
Sample Data Models
感測資料模型（橋梁健康監測）

支援兩種 CSV 欄位命名：
- Device:  Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C
- Generic: created_at,entry_id,field1,field2,field3,field4
"""
from pydantic import BaseModel, Field
from typing import Optional


class SensorSample(BaseModel):
    """
    解析後的單筆感測資料

    建立後不可修改；篩選與排序一律產生新的 list
    """
    timestamp: int = Field(..., description="時間戳 (epoch ms)")
    device: Optional[str] = Field(None, description="裝置識別碼（Device 格式）")
    id: Optional[str] = Field(None, description="entry_id 或資料列編號")
    created_at: Optional[str] = Field(None, description="原始建立時間或 ISO 時間")

    # Device 格式欄位（Generic 格式為 None）
    x: Optional[float] = Field(None, description="加速度 X 軸")
    y: Optional[float] = Field(None, description="加速度 Y 軸")
    z: Optional[float] = Field(None, description="加速度 Z 軸")
    stroke_mm: Optional[float] = Field(None, description="位移 (mm)")
    temperature_c: Optional[float] = Field(None, description="溫度 (°C)")

    # 圖表欄位（Generic 格式 field1..field4，Device 格式由上方欄位對應）
    vibration: float = Field(0.0, description="振動")
    acceleration: float = Field(0.0, description="加速度")
    strain: float = Field(0.0, description="應變")
    temperature: float = Field(0.0, description="溫度")

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "timestamp": 1766390947000,
                "device": "d1",
                "id": "1",
                "created_at": "2025-12-22T08:09:07+00:00",
                "x": 0.012,
                "y": -0.004,
                "z": 0.981,
                "stroke_mm": 25.437,
                "temperature_c": 21.6,
                "vibration": 0.012,
                "acceleration": -0.004,
                "strain": 25.437,
                "temperature": 21.6
            }
        }
