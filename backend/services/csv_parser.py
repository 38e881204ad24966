"""
CSV Parser Service
將裝置上傳的 CSV 文字解析為 SensorSample

支援兩種欄位格式（由 header 自動判斷，不需呼叫端指定）：
- Device:  Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C
- Generic: created_at,entry_id,field1,field2,field3,field4  (ThingSpeak 匯出)

時間戳規則（依序）：
1. 候選欄位中第一個完整日期時間（ISO 8601 等）
2. 第一個只有時間的值（HH:MM:SS），與解析當下的 UTC 日期合併
3. 解析當下時間

只有時間的檔案若是前一天產生，合併出來的日期會錯一天，這是已知限制。
BareTimePolicy.ROLLBACK 會把落在未來的時間往前推一天。
"""
import csv
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from config import BARE_TIME_POLICY
from models.sample import SensorSample
from services.window import current_time_ms

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DAY_MS = 24 * 60 * 60 * 1000


class CsvVocabulary(Enum):
    """CSV 欄位命名格式"""
    DEVICE = "device"
    GENERIC = "generic"


class BareTimePolicy(Enum):
    """只有時間（HH:MM:SS）的時間戳如何補上日期"""
    TODAY = "today"        # 一律使用解析當天
    ROLLBACK = "rollback"  # 落在未來則視為前一天

    @classmethod
    def from_config(cls, value: Optional[str]) -> "BareTimePolicy":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            logger.warning(f"Unknown bare time policy {value!r}, falling back to 'today'")
            return cls.TODAY


# 數值欄位：canonical name -> header 別名（已轉小寫，依優先順序）
DEVICE_FIELDS: Dict[str, Tuple[str, ...]] = {
    "x": ("x",),
    "y": ("y",),
    "z": ("z",),
    "stroke_mm": ("stroke_mm", "stroke"),
    "temperature_c": ("temperature_c", "temp", "temperature"),
}

GENERIC_FIELDS: Dict[str, Tuple[str, ...]] = {
    "vibration": ("field1", "vibration"),
    "acceleration": ("field2", "acceleration"),
    "strain": ("field3", "strain"),
    "temperature": ("field4", "temperature"),
}

# Device 格式的圖表欄位對應
DEVICE_CHART_FIELDS: Dict[str, str] = {
    "vibration": "x",
    "acceleration": "y",
    "strain": "stroke_mm",
    "temperature": "temperature_c",
}

TIMESTAMP_COLUMNS: Dict[CsvVocabulary, Tuple[str, ...]] = {
    CsvVocabulary.DEVICE: ("timestamp", "time", "created_at", "date"),
    CsvVocabulary.GENERIC: ("created_at", "timestamp", "time", "date"),
}

_DEVICE_MARKERS = frozenset(DEVICE_FIELDS)
_GENERIC_MARKERS = frozenset({
    "field1", "field2", "field3", "field4",
    "vibration", "acceleration", "strain",
})

_ZERO_WIDTH_CHARS = ("\ufeff", "\u200b", "\u200c", "\u200d")
_BARE_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")
_LEADING_FLOAT_RE = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_DATETIME_FORMATS = (
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S UTC",
)


class MalformedRow(ValueError):
    """單一資料列無法解析（只在模組內部使用，不會往外拋）"""


@dataclass(frozen=True)
class ColumnMapping:
    """
    由 header 建立的欄位索引（每次解析只建立一次）

    Attributes:
        vocabulary: 欄位格式
        width: header 欄位數，資料列必須相同
        numeric: canonical 數值欄位 -> 欄位索引（header 缺少的欄位不在其中）
        timestamp: 時間戳候選欄位索引，依優先順序
    """
    vocabulary: CsvVocabulary
    width: int
    numeric: Dict[str, int]
    timestamp: Tuple[int, ...]
    device: Optional[int] = None
    entry_id: Optional[int] = None
    created_at: Optional[int] = None

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(vocabulary_fields(self.vocabulary))

    @classmethod
    def from_header(cls, header: Sequence[str]) -> Optional["ColumnMapping"]:
        """
        建立欄位索引

        Returns:
            ColumnMapping，無法辨識格式時為 None
        """
        names = [_normalize_header(h) for h in header]
        vocabulary = detect_vocabulary(names)
        if vocabulary is None:
            return None

        index: Dict[str, int] = {}
        for i, name in enumerate(names):
            index.setdefault(name, i)  # 重複欄位取第一個

        aliases = DEVICE_FIELDS if vocabulary is CsvVocabulary.DEVICE else GENERIC_FIELDS
        numeric: Dict[str, int] = {}
        for canonical, candidates in aliases.items():
            for alias in candidates:
                if alias in index:
                    numeric[canonical] = index[alias]
                    break

        return cls(
            vocabulary=vocabulary,
            width=len(names),
            numeric=numeric,
            timestamp=tuple(index[c] for c in TIMESTAMP_COLUMNS[vocabulary] if c in index),
            device=index.get("device"),
            entry_id=index.get("entry_id"),
            created_at=index.get("created_at"),
        )


@dataclass
class ParseReport:
    """解析結果與統計"""
    samples: List[SensorSample] = field(default_factory=list)
    vocabulary: Optional[CsvVocabulary] = None
    total_rows: int = 0
    skipped_rows: int = 0       # 欄位數錯誤等格式問題
    dropped_rows: int = 0       # 所有數值欄位皆無法解析
    bare_time_rows: int = 0     # 使用「只有時間」補日期的列數
    fallback_time_rows: int = 0  # 無有效時間戳，使用解析時間

    @property
    def discarded_rows(self) -> int:
        return self.skipped_rows + self.dropped_rows


def vocabulary_fields(vocabulary: CsvVocabulary) -> Tuple[str, ...]:
    """該格式的數值欄位名稱"""
    if vocabulary is CsvVocabulary.DEVICE:
        return tuple(DEVICE_FIELDS)
    return tuple(GENERIC_FIELDS)


def _normalize_header(name: str) -> str:
    text = str(name or "")
    for z in _ZERO_WIDTH_CHARS:
        text = text.replace(z, "")
    return text.strip().lower()


def detect_vocabulary(header: Sequence[str]) -> Optional[CsvVocabulary]:
    """
    由 header 判斷欄位格式

    任一 Device 欄位（x, y, z, stroke_mm, temperature_c）存在即為 DEVICE，
    否則任一 Generic 欄位存在為 GENERIC，都沒有則回傳 None
    """
    names = {_normalize_header(h) for h in header}
    if names & _DEVICE_MARKERS:
        return CsvVocabulary.DEVICE
    if names & _GENERIC_MARKERS:
        return CsvVocabulary.GENERIC
    return None


def sniff_vocabulary(raw_text: Union[str, bytes, None]) -> Optional[CsvVocabulary]:
    """只讀第一個非空行判斷格式（供資料來源驗證內容）"""
    if raw_text is None:
        return None
    lines = _split_lines(_decode(raw_text))
    if not lines:
        return None
    return detect_vocabulary(_split_fields(lines[0]))


def parse_float(value: Optional[str]) -> float:
    """
    寬鬆的浮點數解析，無效值回傳 NaN（不拋例外）

    取開頭的數字部分，帶單位的值也可解析（"25.437mm" -> 25.437）。
    沒有數字開頭、inf 或 nan 都回傳 NaN
    """
    if value is None:
        return math.nan
    match = _LEADING_FLOAT_RE.match(str(value))
    if not match:
        return math.nan
    result = float(match.group(0))
    return result if math.isfinite(result) else math.nan


def _to_epoch_ms(dt: datetime) -> int:
    return (dt - EPOCH) // timedelta(milliseconds=1)


def epoch_ms_to_iso(timestamp: int) -> str:
    return (EPOCH + timedelta(milliseconds=timestamp)).isoformat(timespec="milliseconds")


def parse_datetime_ms(value: Optional[str]) -> Optional[int]:
    """
    解析完整日期時間為 epoch ms

    接受 ISO 8601（含 Z 或時區偏移）及常見的 YYYY/MM/DD、MM/DD/YYYY 格式，
    沒有時區視為 UTC。只有時間或無法解析回傳 None
    """
    text = (value or "").strip()
    if not text or _BARE_TIME_RE.match(text):
        return None

    iso_text = text[:-1] + "+00:00" if text[-1] in "Zz" else text
    dt: Optional[datetime] = None
    try:
        dt = datetime.fromisoformat(iso_text)
    except ValueError:
        for fmt in _DATETIME_FORMATS:
            try:
                dt = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        timestamp = _to_epoch_ms(dt)
        # 時區偏移可能使 UTC 時間超出 datetime 範圍
        epoch_ms_to_iso(timestamp)
    except OverflowError:
        return None
    return timestamp


def combine_bare_time(value: Optional[str], now_ms: int,
                      policy: BareTimePolicy = BareTimePolicy.TODAY) -> Optional[int]:
    """
    將 HH:MM:SS 與 now_ms 的 UTC 日期合併

    Returns:
        epoch ms，不是合法時間則為 None
    """
    match = _BARE_TIME_RE.match((value or "").strip())
    if not match:
        return None
    hour, minute, second = (int(g) for g in match.groups())
    if hour > 23 or minute > 59 or second > 59:
        return None

    today = (EPOCH + timedelta(milliseconds=now_ms)).date()
    combined = _to_epoch_ms(datetime(
        today.year, today.month, today.day, hour, minute, second, tzinfo=timezone.utc
    ))
    if policy is BareTimePolicy.ROLLBACK and combined > now_ms:
        combined -= DAY_MS
    return combined


def _decode(raw_text: Union[str, bytes]) -> str:
    if isinstance(raw_text, (bytes, bytearray)):
        return bytes(raw_text).decode("utf-8-sig", errors="replace")
    return raw_text.lstrip("\ufeff")


def _split_lines(text: str) -> List[str]:
    # strip() 同時去除 CRLF 留下的 \r
    return [line.strip() for line in text.split("\n") if line.strip()]


def _split_fields(line: str) -> List[str]:
    row = next(csv.reader([line]), [])
    return [value.strip() for value in row]


def _resolve_timestamp(fields: List[str], mapping: ColumnMapping, now_ms: int,
                       policy: BareTimePolicy) -> Tuple[int, str]:
    """
    決定單列時間戳

    Returns:
        (timestamp_ms, kind)，kind 為 "datetime" | "bare" | "fallback"
    """
    for idx in mapping.timestamp:
        parsed = parse_datetime_ms(fields[idx])
        if parsed is not None:
            return parsed, "datetime"

    for idx in mapping.timestamp:
        combined = combine_bare_time(fields[idx], now_ms, policy)
        if combined is not None:
            return combined, "bare"

    return now_ms, "fallback"


def _build_sample(fields: List[str], row_number: int, mapping: ColumnMapping,
                  values: Dict[str, float], timestamp: int) -> SensorSample:
    device = fields[mapping.device] if mapping.device is not None else ""
    entry_id = fields[mapping.entry_id] if mapping.entry_id is not None else ""
    created_at = fields[mapping.created_at] if mapping.created_at is not None else ""

    common = {
        "timestamp": timestamp,
        "device": device or None,
        "id": entry_id or str(row_number),
        "created_at": created_at or epoch_ms_to_iso(timestamp),
    }

    if mapping.vocabulary is CsvVocabulary.DEVICE:
        chart = {name: values[source] for name, source in DEVICE_CHART_FIELDS.items()}
        return SensorSample(**common, **values, **chart)
    return SensorSample(**common, **values)


def parse_csv_report(raw_text: Union[str, bytes], now_ms: Optional[int] = None,
                     bare_time_policy: Optional[BareTimePolicy] = None) -> ParseReport:
    """
    解析 CSV 並回傳統計

    格式錯誤的資料列只會記錄並略過，不會中斷整個檔案

    Args:
        raw_text: 完整 CSV 內容（str 或 bytes），第一行為 header
        now_ms: 解析時間（epoch ms），預設為目前時間
        bare_time_policy: 只有時間的時間戳處理方式，預設取自 config

    Returns:
        ParseReport，samples 維持檔案順序

    Raises:
        TypeError: raw_text 為 None
    """
    if raw_text is None:
        raise TypeError("raw_text must be str or bytes, not None")

    if now_ms is None:
        now_ms = current_time_ms()
    if bare_time_policy is None:
        bare_time_policy = BareTimePolicy.from_config(BARE_TIME_POLICY)

    report = ParseReport()
    lines = _split_lines(_decode(raw_text))
    if len(lines) < 2:
        return report

    mapping = ColumnMapping.from_header(_split_fields(lines[0]))
    if mapping is None:
        logger.warning(f"Unrecognised CSV header, no samples parsed: {lines[0][:120]!r}")
        return report

    report.vocabulary = mapping.vocabulary
    field_names = mapping.fields

    for row_number, line in enumerate(lines[1:], start=1):
        report.total_rows += 1
        try:
            fields = _split_fields(line)
            if len(fields) != mapping.width:
                raise MalformedRow(f"{len(fields)} columns, expected {mapping.width}")

            parsed = {
                name: parse_float(fields[mapping.numeric[name]]) if name in mapping.numeric else math.nan
                for name in field_names
            }
            if all(math.isnan(v) for v in parsed.values()):
                report.dropped_rows += 1
                continue

            values = {name: 0.0 if math.isnan(v) else v for name, v in parsed.items()}
            timestamp, kind = _resolve_timestamp(fields, mapping, now_ms, bare_time_policy)
            sample = _build_sample(fields, row_number, mapping, values, timestamp)
        except (ValueError, OverflowError, csv.Error) as e:
            report.skipped_rows += 1
            logger.warning(f"Skipping CSV row {row_number}: {e}")
            continue

        if kind == "bare":
            report.bare_time_rows += 1
        elif kind == "fallback":
            report.fallback_time_rows += 1
        report.samples.append(sample)

    logger.info(
        f"Parsed {len(report.samples)} samples ({mapping.vocabulary.value}) "
        f"from {report.total_rows} rows: skipped={report.skipped_rows} "
        f"dropped={report.dropped_rows} bare_time={report.bare_time_rows}"
    )
    return report


def parse_csv(raw_text: Union[str, bytes], now_ms: Optional[int] = None,
              bare_time_policy: Optional[BareTimePolicy] = None) -> List[SensorSample]:
    """
    解析 CSV 為 SensorSample list（檔案順序）

    空檔案或只有 header 回傳空 list，不視為錯誤
    """
    return parse_csv_report(raw_text, now_ms=now_ms, bare_time_policy=bare_time_policy).samples
