"""
Device Models
監測裝置（每個裝置對應一個 Google Drive 資料夾）
"""
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional


class Device(BaseModel):
    """監測裝置"""
    id: str = Field(..., description="裝置 ID（例如 bridge-001）")
    name: str = Field(..., description="顯示名稱，也是本地資料夾名稱")
    description: Optional[str] = Field(None, description="說明")
    folder_id: str = Field(..., description="Google Drive 資料夾 ID")
    folder_url: str = Field(..., description="Google Drive 資料夾 URL")
    is_active: bool = Field(True, description="是否啟用（刪除為軟刪除）")
    added_at: datetime = Field(..., description="新增時間")
    last_accessed: Optional[datetime] = Field(None, description="最後讀取時間")


class DeviceSummary(BaseModel):
    """回應中附帶的裝置摘要"""
    id: str
    name: str
    description: Optional[str] = None
    folder_url: str

    @classmethod
    def from_device(cls, device: Device) -> "DeviceSummary":
        return cls(
            id=device.id,
            name=device.name,
            description=device.description,
            folder_url=device.folder_url,
        )
