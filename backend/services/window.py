"""
Recency Window Service
依請求當下時間篩選最近 N 分鐘的資料

以「現在」而非最新一筆資料為基準：資料來源停止更新時，
時間窗內會是空的，讓前端顯示「沒有最新資料」而不是舊資料。
"""
import math
import re
import time
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from config import DEFAULT_FILE_COUNT, DEFAULT_MINUTES, MAX_FILE_COUNT
from models.sample import SensorSample

MINUTE_MS = 60_000

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def current_time_ms() -> int:
    """目前時間（epoch ms）"""
    return time.time_ns() // 1_000_000


def normalize_positive(value: Union[str, int, float, None],
                       default: Union[int, float],
                       maximum: Optional[Union[int, float]] = None) -> Union[int, float]:
    """
    整理查詢參數為正數

    字串取開頭的整數（"5abc" -> 5）；None、NaN、非數字、0 或負數都改用 default。
    有給 maximum 時限制上限。
    """
    number: Optional[Union[int, float]] = None

    if isinstance(value, bool):
        number = None
    elif isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        if match:
            number = int(match.group(1))

    if number is None or not math.isfinite(number) or number <= 0:
        number = default
    if maximum is not None and number > maximum:
        number = maximum
    return number


def normalize_minutes(value: Union[str, int, float, None],
                      default: Union[int, float] = DEFAULT_MINUTES,
                      maximum: Optional[Union[int, float]] = None) -> Union[int, float]:
    """
    整理時間窗參數

    Returns:
        正數分鐘數
    """
    return normalize_positive(value, default, maximum)


def normalize_file_count(value: Union[str, int, float, None],
                         default: int = DEFAULT_FILE_COUNT,
                         maximum: int = MAX_FILE_COUNT) -> int:
    """要合併的最新檔案數（1..maximum 的整數）"""
    return max(int(normalize_positive(value, default, maximum)), 1)


def select_recent(samples: Sequence[SensorSample],
                  minutes: Union[str, int, float, None] = None,
                  now_ms: Optional[int] = None,
                  max_minutes: Optional[Union[int, float]] = None) -> List[SensorSample]:
    """
    取得最近 N 分鐘的資料，最新在前

    Args:
        samples: 解析後的資料（不會被修改）
        minutes: 時間窗（分鐘），無效值視為預設 1 分鐘
        now_ms: 基準時間，預設為目前時間（測試時注入固定時間）
        max_minutes: 時間窗上限

    Returns:
        新的 list，依 timestamp 降序；相同 timestamp 維持原本順序
    """
    if now_ms is None:
        now_ms = current_time_ms()
    window = normalize_minutes(minutes, maximum=max_minutes)
    cutoff = now_ms - window * MINUTE_MS

    # sorted(reverse=True) 為穩定排序
    ordered = sorted(samples, key=lambda s: s.timestamp, reverse=True)
    return [s for s in ordered if s.timestamp >= cutoff]


def _reading_key(sample: SensorSample) -> Tuple:
    return (
        sample.device,
        sample.timestamp,
        sample.x, sample.y, sample.z, sample.stroke_mm, sample.temperature_c,
        sample.vibration, sample.acceleration, sample.strain, sample.temperature,
    )


def merge_samples(*batches: Iterable[SensorSample]) -> List[SensorSample]:
    """
    合併多次讀取的結果並去除重複

    後面批次中與前面批次完全相同的讀值（裝置、時間與所有數值）會被略過；
    同一批次內的重複保留（取樣頻率可能高於時間戳解析度）。
    """
    merged: List[SensorSample] = []
    seen = set()

    for batch in batches:
        batch_keys = set()
        for sample in batch:
            key = _reading_key(sample)
            if key in seen:
                continue
            merged.append(sample)
            batch_keys.add(key)
        seen |= batch_keys

    return merged
