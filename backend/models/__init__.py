"""
Data Models Package
"""
from .sample import SensorSample
from .stats import SampleStats, SpectrumBin
from .device import Device, DeviceSummary
from .response import (
    SensorDataMetadata,
    SensorDataResponse,
    SensorStatsResponse,
    SpectrumResponse,
    ErrorResponse,
)

__all__ = [
    "SensorSample",
    "SampleStats",
    "SpectrumBin",
    "Device",
    "DeviceSummary",
    "SensorDataMetadata",
    "SensorDataResponse",
    "SensorStatsResponse",
    "SpectrumResponse",
    "ErrorResponse",
]
