"""
Pytest Fixtures
測試共用配置
"""
import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient
import sys
import os

# 將 backend 加入路徑
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from main import app
from services.core import CoreService

# 固定的解析時間：2025-12-22 08:10:00 UTC
NOW = datetime(2025, 12, 22, 8, 10, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp()) * 1000


@pytest.fixture
def now_ms():
    return NOW_MS


@pytest.fixture
def core():
    """
    乾淨的 CoreService（預設裝置清單）
    """
    CoreService.reset_instance()
    instance = CoreService.get_instance()
    yield instance
    CoreService.reset_instance()


@pytest.fixture
def client(core):
    """
    FastAPI TestClient fixture
    """
    return TestClient(app)


@pytest.fixture
def device_csv():
    """
    Device 格式（時間戳只有時間）
    """
    return "\n".join([
        "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C",
        "d1,08:09:30,0.012,-0.004,0.981,25.437,21.6",
        "d1,08:09:00,0.015,-0.002,0.979,25.441,21.6",
        "d1,08:08:30,0.011,-0.006,0.983,25.430,21.7",
    ])


@pytest.fixture
def generic_csv():
    """
    Generic / ThingSpeak 格式（完整 ISO 時間）
    """
    return "\n".join([
        "created_at,entry_id,field1,field2,field3,field4",
        "2025-12-22T08:09:50Z,30,1.2,0.25,120.5,22.1",
        "2025-12-22T08:09:40Z,29,1.3,0.27,121.0,22.0",
    ])
