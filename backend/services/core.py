"""
CoreService - Central Service Manager (Singleton)
統一管理裝置清單與資料來源，串接完整的資料處理流程

資料流：
Source Resolver -> CSV Parser -> merge -> Recency Window -> API

每個請求都重新讀取與解析，沒有跨請求的快取
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional
import threading
import logging

from config import (
    CSV_DATA_DIR,
    SOURCE_STRATEGIES,
    GOOGLE_DRIVE_API_KEY,
    FETCH_TIMEOUT_SEC,
    MAX_MINUTES,
)
from models.device import Device
from models.sample import SensorSample
from .csv_parser import CsvVocabulary, parse_csv_report
from .device_store import DeviceStore, InMemoryDeviceStore
from .source import (
    ChainedResolver,
    GoogleDriveResolver,
    LocalFolderResolver,
    SourceResolver,
    SourceUnavailable,
)
from .window import (
    current_time_ms,
    merge_samples,
    normalize_file_count,
    normalize_minutes,
    select_recent,
)

logger = logging.getLogger(__name__)


def build_resolver(device: Device) -> SourceResolver:
    """
    依 SOURCE_STRATEGIES 順序建立裝置的資料來源

    - local: CSV_DATA_DIR/<device.name>
    - drive: 裝置的 Google Drive 資料夾（需 GOOGLE_DRIVE_API_KEY）
    """
    resolvers: List[SourceResolver] = []
    for strategy in SOURCE_STRATEGIES:
        if strategy == "local":
            resolvers.append(LocalFolderResolver(Path(CSV_DATA_DIR) / device.name))
        elif strategy == "drive":
            if GOOGLE_DRIVE_API_KEY:
                resolvers.append(GoogleDriveResolver(
                    device.folder_id, GOOGLE_DRIVE_API_KEY, timeout=FETCH_TIMEOUT_SEC
                ))
            else:
                logger.debug("GOOGLE_DRIVE_API_KEY not set, skipping drive source")
        else:
            logger.warning(f"Unknown source strategy: {strategy}")
    return ChainedResolver(resolvers)


@dataclass
class IngestResult:
    """一次讀取與解析的結果"""
    device: Device
    filenames: List[str]
    source: str
    samples: List[SensorSample]
    vocabulary: Optional[CsvVocabulary] = None
    skipped_rows: int = 0


@dataclass
class RecentData:
    """時間窗篩選後的結果"""
    ingest: IngestResult
    minutes: float
    samples: List[SensorSample] = field(default_factory=list)

    @property
    def total_points(self) -> int:
        return len(self.ingest.samples)


class CoreService:
    """
    CoreService - 核心服務管理器（Singleton）

    持有裝置清單與資料來源工廠；resolver_factory 可替換（測試或其他來源）
    """

    _instance: Optional['CoreService'] = None
    _lock = threading.Lock()

    def __init__(self, device_store: Optional[DeviceStore] = None,
                 resolver_factory: Optional[Callable[[Device], SourceResolver]] = None):
        """
        初始化核心服務

        不應直接呼叫，請使用 get_instance()
        """
        self.device_store: DeviceStore = device_store or InMemoryDeviceStore()
        self.resolver_factory: Callable[[Device], SourceResolver] = resolver_factory or build_resolver

        self._stats = {
            "total_requests": 0,
            "failed_requests": 0,
            "total_samples": 0,
        }
        self._stats_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> 'CoreService':
        """
        取得 CoreService 單例

        Returns:
            CoreService: 核心服務實例
        """
        if cls._instance is None:
            with cls._lock:
                # Double-check locking
                if cls._instance is None:
                    cls._instance = CoreService()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """
        重置單例（主要用於測試）

        警告：會恢復預設裝置清單
        """
        with cls._lock:
            cls._instance = None

    def _count(self, key: str, amount: int = 1):
        with self._stats_lock:
            self._stats[key] += amount

    # --- 資料讀取 ---

    def resolver_for(self, device_id: Optional[str] = None) -> SourceResolver:
        """
        取得裝置的資料來源

        Raises:
            DeviceNotFound: 裝置不存在
        """
        device = self.device_store.resolve(device_id)
        return self.resolver_factory(device)

    def load(self, device_id: Optional[str] = None,
             file_count: Optional[int] = None,
             now_ms: Optional[int] = None) -> IngestResult:
        """
        讀取並解析裝置最新的 CSV 檔

        Args:
            device_id: 裝置 ID，None 為預設裝置
            file_count: 合併的最新檔案數（1..MAX_FILE_COUNT）
            now_ms: 解析時間（只有時間的時間戳以此補日期）

        Returns:
            IngestResult（samples 維持檔案順序，已去重）

        Raises:
            DeviceNotFound: 裝置不存在
            SourceUnavailable: 取不到任何 CSV
        """
        self._count("total_requests")
        device = self.device_store.resolve(device_id)
        count = normalize_file_count(file_count)

        resolver = self.resolver_factory(device)
        try:
            fetched = resolver.fetch_latest(count)
        except SourceUnavailable:
            self._count("failed_requests")
            raise
        if not fetched:
            self._count("failed_requests")
            raise SourceUnavailable(f"No CSV data available for device {device.name}")

        if now_ms is None:
            now_ms = current_time_ms()

        batches = []
        vocabulary = None
        skipped = 0
        for raw in fetched:
            report = parse_csv_report(raw.content, now_ms=now_ms)
            batches.append(report.samples)
            vocabulary = vocabulary or report.vocabulary
            skipped += report.discarded_rows

        samples = merge_samples(*batches)
        self._count("total_samples", len(samples))
        logger.info(
            f"Loaded {len(samples)} samples for {device.name} from "
            f"{len(fetched)} file(s) via {fetched[0].source or resolver.name}"
        )

        return IngestResult(
            device=device,
            filenames=[raw.filename for raw in fetched],
            source=fetched[0].source or resolver.name,
            samples=samples,
            vocabulary=vocabulary,
            skipped_rows=skipped,
        )

    def get_recent(self, device_id: Optional[str] = None,
                   minutes=None,
                   file_count: Optional[int] = None,
                   now_ms: Optional[int] = None) -> RecentData:
        """
        讀取裝置資料並篩選最近 N 分鐘（上限 MAX_MINUTES）

        Returns:
            RecentData（samples 最新在前）
        """
        if now_ms is None:
            now_ms = current_time_ms()
        window = normalize_minutes(minutes, maximum=MAX_MINUTES)

        ingest = self.load(device_id, file_count=file_count, now_ms=now_ms)
        recent = select_recent(ingest.samples, window, now_ms=now_ms)
        return RecentData(ingest=ingest, minutes=window, samples=recent)

    # --- 統計查詢 ---

    def get_stats(self) -> dict:
        """
        取得服務統計

        Returns:
            dict: 請求數、失敗數、解析筆數與裝置統計
        """
        with self._stats_lock:
            stats = self._stats.copy()
        stats["devices"] = self.device_store.get_stats()
        return stats

    def __repr__(self):
        return (
            f"<CoreService "
            f"requests={self._stats['total_requests']} "
            f"failed={self._stats['failed_requests']}>"
        )


# 快捷方式：取得全域實例
def get_core() -> CoreService:
    """取得 CoreService 全域實例"""
    return CoreService.get_instance()
