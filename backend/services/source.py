"""
Source Resolver Service
取得裝置上傳的原始 CSV 內容

每種取得方式實作同一個 SourceResolver 介面，
ChainedResolver 依設定順序逐一嘗試，全部失敗時拋出 SourceUnavailable。
取不到資料時絕不以模擬資料代替。
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import requests

from services.csv_parser import sniff_vocabulary

logger = logging.getLogger(__name__)

DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
GOOGLE_SHEET_MIME = "application/vnd.google-apps.spreadsheet"
CSV_MIME_TYPES = ("text/csv", "text/plain", "application/csv", "application/vnd.ms-excel")

_session: Optional[requests.Session] = None
_session_lock = threading.Lock()


def shared_session() -> requests.Session:
    """所有 GoogleDriveResolver 共用的 Session（連線重用，不隨請求建立）"""
    global _session
    if _session is None:
        with _session_lock:
            if _session is None:
                _session = requests.Session()
    return _session


class SourceUnavailable(RuntimeError):
    """所有資料來源都無法提供 CSV 內容"""


@dataclass(frozen=True)
class SourceFile:
    """資料來源中的一個檔案"""
    id: str
    name: str
    modified_time: Optional[str] = None  # ISO 8601
    size: Optional[int] = None
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class RawCsv:
    """取得的原始 CSV"""
    filename: str
    content: str
    source: str = ""


class SourceResolver(ABC):
    """資料來源介面"""

    name = "source"

    @abstractmethod
    def list_files(self) -> List[SourceFile]:
        """列出檔案，最新的在前"""

    @abstractmethod
    def read_file(self, file: SourceFile) -> Optional[str]:
        """讀取檔案內容，失敗時回傳 None 或拋出例外"""

    def fetch_latest(self, count: int = 1) -> List[RawCsv]:
        """
        讀取最新的 count 個檔案

        Returns:
            RawCsv list（最新在前），內容為空的檔案會被略過
        """
        results: List[RawCsv] = []
        for file in self.list_files()[:max(count, 1)]:
            content = self.read_file(file)
            if content and content.strip():
                results.append(RawCsv(filename=file.name, content=content, source=self.name))
            else:
                logger.warning(f"[{self.name}] Empty content for {file.name}")
        return results

    def fetch_raw_csv(self) -> Optional[RawCsv]:
        """讀取最新檔案，沒有則回傳 None"""
        latest = self.fetch_latest(1)
        return latest[0] if latest else None


class LocalFolderResolver(SourceResolver):
    """
    本地資料夾（例如同步下來的 Google Drive 資料夾）

    依修改時間排序，時間相同再依檔名降序（檔名含時間，例如 2025-12-22_08-00.csv）
    """

    name = "local"

    def __init__(self, directory, pattern: str = "*.csv"):
        self.directory = Path(directory)
        self.pattern = pattern

    def list_files(self) -> List[SourceFile]:
        if not self.directory.is_dir():
            return []

        entries = []
        for path in self.directory.glob(self.pattern):
            if not path.is_file():
                continue
            stat = path.stat()
            entries.append((stat.st_mtime, path.name, stat.st_size, path))

        entries.sort(key=lambda e: (e[0], e[1]), reverse=True)
        return [
            SourceFile(
                id=str(path),
                name=name,
                modified_time=datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat(),
                size=size,
                mime_type="text/csv",
            )
            for mtime, name, size, path in entries
        ]

    def read_file(self, file: SourceFile) -> Optional[str]:
        return Path(file.id).read_text(encoding="utf-8-sig", errors="replace")

    def __repr__(self):
        return f"<LocalFolderResolver {self.directory}>"


class GoogleDriveResolver(SourceResolver):
    """
    Google Drive REST API v3（API key，資料夾需公開分享）

    CSV 檔以 alt=media 下載，Google Sheets 以 text/csv 匯出
    """

    name = "drive"

    def __init__(self, folder_id: str, api_key: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.folder_id = folder_id
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or shared_session()

    def list_files(self) -> List[SourceFile]:
        params = {
            "q": f"'{self.folder_id}' in parents and trashed = false",
            "orderBy": "modifiedTime desc",
            "fields": "files(id,name,modifiedTime,size,mimeType)",
            "pageSize": 50,
            "key": self.api_key,
        }
        response = self.session.get(DRIVE_FILES_URL, params=params, timeout=self.timeout)
        response.raise_for_status()

        files = []
        for item in response.json().get("files", []):
            mime_type = item.get("mimeType")
            name = item.get("name", "")
            if mime_type != GOOGLE_SHEET_MIME and mime_type not in CSV_MIME_TYPES \
                    and not name.lower().endswith(".csv"):
                continue
            size = item.get("size")
            files.append(SourceFile(
                id=item["id"],
                name=name,
                modified_time=item.get("modifiedTime"),
                size=int(size) if size is not None else None,
                mime_type=mime_type,
            ))
        return files

    def read_file(self, file: SourceFile) -> Optional[str]:
        if file.mime_type == GOOGLE_SHEET_MIME:
            url = f"{DRIVE_FILES_URL}/{file.id}/export"
            params = {"mimeType": "text/csv", "key": self.api_key}
        else:
            url = f"{DRIVE_FILES_URL}/{file.id}"
            params = {"alt": "media", "key": self.api_key}

        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.text

    def __repr__(self):
        return f"<GoogleDriveResolver folder={self.folder_id}>"


class StaticResolver(SourceResolver):
    """記憶體中的檔案（上傳內容或測試用），依給定順序視為最新在前"""

    name = "static"

    def __init__(self, files: Sequence[RawCsv] = ()):
        self._files = list(files)

    def list_files(self) -> List[SourceFile]:
        return [SourceFile(id=str(i), name=f.filename) for i, f in enumerate(self._files)]

    def read_file(self, file: SourceFile) -> Optional[str]:
        return self._files[int(file.id)].content


class ChainedResolver(SourceResolver):
    """
    依優先順序嘗試多個資料來源

    某個來源拋出例外、沒有檔案或內容不是可辨識的 CSV 時，記錄後換下一個
    """

    name = "chain"

    def __init__(self, resolvers: Sequence[SourceResolver]):
        self.resolvers = list(resolvers)
        # file id -> 列出該檔案的來源
        self._owners: Dict[str, SourceResolver] = {}

    def list_files(self) -> List[SourceFile]:
        """回傳第一個有檔案的來源的清單，並記住檔案所屬來源供 read_file 使用"""
        for resolver in self.resolvers:
            try:
                files = resolver.list_files()
            except (requests.RequestException, OSError, ValueError) as e:
                logger.warning(f"[{resolver.name}] Listing files failed: {e}")
                continue
            if files:
                self._owners = {f.id: resolver for f in files}
                return files
        return []

    def read_file(self, file: SourceFile) -> Optional[str]:
        """
        由列出該檔案的來源讀取

        Raises:
            SourceUnavailable: 檔案不是由這個 ChainedResolver 的 list_files 列出
        """
        resolver = self._owners.get(file.id)
        if resolver is None:
            raise SourceUnavailable(f"{file.name} was not listed by any configured source")
        return resolver.read_file(file)

    def fetch_latest(self, count: int = 1) -> List[RawCsv]:
        """
        回傳第一個成功來源的最新檔案

        Raises:
            SourceUnavailable: 所有來源都失敗
        """
        for resolver in self.resolvers:
            try:
                fetched = resolver.fetch_latest(count)
            except (requests.RequestException, OSError, ValueError) as e:
                logger.warning(f"[{resolver.name}] Fetch failed: {e}")
                continue

            valid = []
            for raw in fetched:
                if sniff_vocabulary(raw.content) is None:
                    logger.warning(f"[{resolver.name}] {raw.filename} has no recognised CSV header")
                    continue
                valid.append(raw)

            if valid:
                logger.info(f"[{resolver.name}] Fetched {', '.join(r.filename for r in valid)}")
                return valid
            logger.warning(f"[{resolver.name}] No usable CSV files")

        logger.error(f"No CSV data available from {len(self.resolvers)} source(s)")
        raise SourceUnavailable("No CSV data available from any configured source")

    def fetch_raw_csv(self) -> Optional[RawCsv]:
        try:
            return self.fetch_latest(1)[0]
        except SourceUnavailable:
            return None

    def __repr__(self):
        return f"<ChainedResolver {self.resolvers!r}>"
