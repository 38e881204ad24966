"""
Analysis Service
時間窗內資料的統計與頻譜
"""
from typing import Dict, List, Optional, Sequence

import numpy as np

from models.sample import SensorSample
from models.stats import SampleStats, SpectrumBin
from services.csv_parser import CsvVocabulary, vocabulary_fields

CHART_FIELDS = ("vibration", "acceleration", "strain", "temperature")


def numeric_fields(vocabulary: Optional[CsvVocabulary]) -> tuple:
    """統計要回報的欄位，Device 格式用原始欄位，其餘用圖表欄位"""
    if vocabulary is CsvVocabulary.DEVICE:
        return vocabulary_fields(vocabulary)
    return CHART_FIELDS


def _values(samples: Sequence[SensorSample], field: str) -> np.ndarray:
    values = [getattr(s, field) for s in samples]
    return np.array([v for v in values if v is not None], dtype=float)


def summarize(samples: Sequence[SensorSample], fields: Sequence[str]) -> Dict[str, SampleStats]:
    """
    各欄位統計

    Args:
        samples: 資料
        fields: 欄位名稱

    Returns:
        欄位 -> SampleStats，沒有資料的欄位不列出
    """
    stats: Dict[str, SampleStats] = {}
    for field in fields:
        x = _values(samples, field)
        if x.size == 0:
            continue
        stats[field] = SampleStats(
            count=int(x.size),
            mean=float(x.mean()),
            std=float(x.std()),
            min_value=float(x.min()),
            max_value=float(x.max()),
            median=float(np.median(x)),
        )
    return stats


def _estimate_interval_sec(timestamps: np.ndarray) -> Optional[float]:
    """以相鄰時間差的中位數估計取樣間隔"""
    if timestamps.size < 2:
        return None
    diffs = np.diff(timestamps)
    diffs = diffs[diffs > 0]
    if diffs.size == 0:
        return None
    return float(np.median(diffs)) / 1000.0


def spectrum(samples: Sequence[SensorSample], field: str,
             max_points: int = 50) -> List[SpectrumBin]:
    """
    計算單一欄位的振幅頻譜

    補零至 2 的次方後做 FFT，振幅除以 FFT 長度，只取前半段

    Args:
        samples: 資料（任意順序，內部依時間排序）
        field: 欄位名稱
        max_points: 最多回傳的頻帶數

    Returns:
        SpectrumBin list，少於 2 筆資料時為空
    """
    ordered = sorted(samples, key=lambda s: s.timestamp)
    ordered = [s for s in ordered if getattr(s, field) is not None]
    if len(ordered) < 2:
        return []

    signal = np.array([getattr(s, field) for s in ordered], dtype=float)
    n = 1 << int(np.ceil(np.log2(signal.size)))
    magnitudes = np.abs(np.fft.fft(signal, n=n))[: n // 2] / n

    interval = _estimate_interval_sec(np.array([s.timestamp for s in ordered], dtype=float))
    freqs = np.fft.fftfreq(n, d=interval)[: n // 2] if interval else None

    bins = []
    for i, magnitude in enumerate(magnitudes[:max(max_points, 0)]):
        bins.append(SpectrumBin(
            index=i,
            frequency_hz=float(freqs[i]) if freqs is not None else None,
            magnitude=float(magnitude),
        ))
    return bins
