"""
Services Package
業務邏輯層
"""
from services.csv_parser import CsvVocabulary, BareTimePolicy, parse_csv, parse_csv_report
from services.window import select_recent, merge_samples, normalize_minutes, normalize_file_count
from services.source import SourceResolver, ChainedResolver, SourceUnavailable
from services.device_store import DeviceStore, InMemoryDeviceStore, DeviceNotFound

__all__ = [
    "CsvVocabulary",
    "BareTimePolicy",
    "parse_csv",
    "parse_csv_report",
    "select_recent",
    "merge_samples",
    "normalize_minutes",
    "normalize_file_count",
    "SourceResolver",
    "ChainedResolver",
    "SourceUnavailable",
    "DeviceStore",
    "InMemoryDeviceStore",
    "DeviceNotFound",
]
