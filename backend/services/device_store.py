"""
Device Store Service
監測裝置管理（每個裝置對應一個 Google Drive 資料夾）

DeviceStore 為儲存介面，InMemoryDeviceStore 為預設實作（重啟後恢復預設裝置）
"""
import logging
import re
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from models.device import Device

logger = logging.getLogger(__name__)

_FOLDER_ID_PATTERNS = (
    re.compile(r"/drive/folders/([a-zA-Z0-9_-]+)"),  # https://drive.google.com/drive/folders/<id>
    re.compile(r"[?&]id=([a-zA-Z0-9_-]+)"),           # https://drive.google.com/open?id=<id>
    re.compile(r"^([a-zA-Z0-9_-]{25,})$"),            # 直接給 folder ID
)

DEFAULT_DEVICES = (
    ("bridge-001", "d1", "Device 1 - Primary monitoring station", "1Aw_zJdQcV5M1Rj5IShq10eLs5wQwjTha"),
    ("bridge-002", "d2", "Device 2 - Secondary monitoring station", "1DfMUNQ3dNqWUHSoNYLVGW0-v-wqcJlq5"),
    ("bridge-003", "d3", "Device 3 - Tertiary monitoring station", "1P7rHZS4vGaMqsahQhiZl1FQAmI1lk3AH"),
)


class DeviceNotFound(LookupError):
    """裝置不存在或已停用"""


def extract_folder_id(url: Optional[str]) -> Optional[str]:
    """從 Google Drive URL 取出 folder ID，無法辨識回傳 None"""
    text = (url or "").strip()
    for pattern in _FOLDER_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def folder_id_to_url(folder_id: str) -> str:
    return f"https://drive.google.com/drive/folders/{folder_id}"


class DeviceStore(ABC):
    """裝置儲存介面"""

    @abstractmethod
    def list_devices(self) -> List[Device]:
        """列出啟用中的裝置"""

    @abstractmethod
    def get_device(self, device_id: str) -> Optional[Device]:
        """取得啟用中的裝置"""

    @abstractmethod
    def get_default(self) -> Optional[Device]:
        """取得預設裝置"""

    @abstractmethod
    def add_device(self, name: str, folder_url: str, description: Optional[str] = None) -> Device:
        """新增裝置"""

    @abstractmethod
    def update_device(self, device_id: str, name: Optional[str] = None,
                      description: Optional[str] = None) -> Device:
        """更新裝置"""

    @abstractmethod
    def remove_device(self, device_id: str) -> bool:
        """停用裝置"""

    @abstractmethod
    def set_default(self, device_id: str) -> bool:
        """設定預設裝置"""

    @abstractmethod
    def touch(self, device_id: str) -> None:
        """更新最後讀取時間"""

    def resolve(self, device_id: Optional[str] = None) -> Device:
        """
        取得請求指定的裝置，未指定時使用預設裝置

        Raises:
            DeviceNotFound: 裝置不存在，或沒有任何裝置
        """
        if not device_id:
            device = self.get_default()
            if device is None:
                raise DeviceNotFound("No devices configured")
            return device

        device = self.get_device(device_id)
        if device is None:
            raise DeviceNotFound(f"Device not found: {device_id}")
        self.touch(device_id)
        return device

    def get_stats(self) -> dict:
        devices = self.list_devices()
        default = self.get_default()
        return {
            "total_devices": len(devices),
            "default_device": default.name if default else None,
            "last_added": max((d.added_at for d in devices), default=None),
        }


class InMemoryDeviceStore(DeviceStore):
    """記憶體內的裝置清單（線程安全）"""

    def __init__(self, seed_defaults: bool = True):
        self._lock = threading.Lock()
        self._devices: List[Device] = []
        self._default_id: Optional[str] = None

        if seed_defaults:
            added_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
            for device_id, name, description, folder_id in DEFAULT_DEVICES:
                self._devices.append(Device(
                    id=device_id,
                    name=name,
                    description=description,
                    folder_id=folder_id,
                    folder_url=folder_id_to_url(folder_id),
                    added_at=added_at,
                ))
            self._default_id = DEFAULT_DEVICES[0][0]

    def _find(self, device_id: str, active_only: bool = True) -> Optional[Device]:
        for device in self._devices:
            if device.id == device_id and (device.is_active or not active_only):
                return device
        return None

    def _active(self) -> List[Device]:
        return [d for d in self._devices if d.is_active]

    def list_devices(self) -> List[Device]:
        with self._lock:
            return [d.model_copy() for d in self._active()]

    def get_device(self, device_id: str) -> Optional[Device]:
        with self._lock:
            device = self._find(device_id)
            return device.model_copy() if device else None

    def get_default(self) -> Optional[Device]:
        with self._lock:
            device = self._find(self._default_id) if self._default_id else None
            if device is None:
                active = self._active()
                device = active[0] if active else None
            return device.model_copy() if device else None

    def add_device(self, name: str, folder_url: str, description: Optional[str] = None) -> Device:
        """
        新增裝置

        Raises:
            ValueError: URL 無效，或該資料夾已有啟用中的裝置
        """
        folder_id = extract_folder_id(folder_url)
        if not folder_id:
            raise ValueError("Invalid Google Drive folder URL")

        with self._lock:
            existing = next((d for d in self._devices if d.folder_id == folder_id), None)
            if existing is not None:
                if existing.is_active:
                    raise ValueError("Device with this folder already exists")
                # 重新啟用先前刪除的裝置
                existing.is_active = True
                existing.name = name
                existing.description = description
                logger.info(f"Device reactivated: {existing.id} ({name})")
                return existing.model_copy()

            device = Device(
                id=f"bridge-{time.time_ns():x}",
                name=name,
                description=description,
                folder_id=folder_id,
                folder_url=folder_id_to_url(folder_id),
                added_at=datetime.now(timezone.utc),
            )
            self._devices.append(device)
            if self._default_id is None:
                self._default_id = device.id

        logger.info(f"Device added: {device.id} ({name})")
        return device.model_copy()

    def update_device(self, device_id: str, name: Optional[str] = None,
                      description: Optional[str] = None) -> Device:
        with self._lock:
            device = self._find(device_id)
            if device is None:
                raise DeviceNotFound(f"Device not found: {device_id}")
            if name:
                device.name = name
            if description is not None:
                device.description = description
            return device.model_copy()

    def remove_device(self, device_id: str) -> bool:
        with self._lock:
            device = self._find(device_id)
            if device is None:
                return False
            device.is_active = False

            if self._default_id == device_id:
                active = self._active()
                self._default_id = active[0].id if active else None

        logger.info(f"Device removed: {device_id}")
        return True

    def set_default(self, device_id: str) -> bool:
        with self._lock:
            if self._find(device_id) is None:
                return False
            self._default_id = device_id
            return True

    def touch(self, device_id: str) -> None:
        with self._lock:
            device = self._find(device_id)
            if device is not None:
                device.last_accessed = datetime.now(timezone.utc)
