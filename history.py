"""Translation history kept in a JSON file."""
import json
import logging
import threading
import uuid
from pathlib import Path
from typing import List, Optional, Sequence, Union

from exceptions import StorageError
from models import HistoryRecord

logger = logging.getLogger(__name__)


class JsonHistoryStore:
    """Append-only list of HistoryRecord, persisted after every change."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.RLock()

    def _load(self) -> List[HistoryRecord]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [HistoryRecord.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise StorageError(f"History file {self.path} is unreadable: {e}") from e

    def _save(self, records: List[HistoryRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump([r.to_dict() for r in records], f, ensure_ascii=False, indent=2)
            tmp.replace(self.path)
        except OSError as e:
            raise StorageError(f"Failed to write history file {self.path}: {e}") from e

    def append(
        self,
        file_name: str,
        source_language: str,
        target_language: str,
        page_count: int = 0,
        failed_pages: Optional[Sequence[int]] = None,
        formats: Optional[Sequence[str]] = None,
    ) -> HistoryRecord:
        """Store a new record; the id and timestamp are generated here."""
        record = HistoryRecord(
            id=uuid.uuid4().hex,
            file_name=file_name,
            source_language=source_language,
            target_language=target_language,
            page_count=page_count,
            failed_pages=list(failed_pages or []),
            formats=list(formats or []),
        )
        with self._lock:
            records = self._load()
            records.append(record)
            self._save(records)
        logger.info("Recorded translation of %s in history", file_name)
        return record

    def list(self, limit: Optional[int] = None, most_recent_first: bool = True) -> List[HistoryRecord]:
        with self._lock:
            records = self._load()
        if most_recent_first:
            records.reverse()
        return records[:limit] if limit is not None else records

    def delete(self, record_id: str) -> bool:
        with self._lock:
            records = self._load()
            kept = [r for r in records if r.id != record_id]
            if len(kept) == len(records):
                return False
            self._save(kept)
        return True
