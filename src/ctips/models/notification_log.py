"""In-memory notification log, newest first, with optional SQLite history."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional

from . import store

log = logging.getLogger(__name__)

STATUS_FORMAT = "As of: %Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class NotificationRecord:
    text: str
    received_at: datetime
    id: Optional[int] = None


class NotificationLog:
    """Ordered list of NotificationRecord, most recent first.

    Also owns the status line shown under the list: the receipt time of the
    last added record, cleared once the log becomes empty.
    """

    def __init__(self, persist: bool = False) -> None:
        self._records: List[NotificationRecord] = []
        self._persist = persist
        self.status = ""

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[NotificationRecord]:
        return iter(list(self._records))

    def add(self, text: str, received_at: Optional[datetime] = None) -> NotificationRecord:
        when = received_at or datetime.now()
        row_id: Optional[int] = None
        if self._persist:
            try:
                row_id = store.save_notice(when.timestamp(), text)
            except Exception as e:
                log.warning("Failed to persist notice: %s", e)
        record = NotificationRecord(text=text, received_at=when, id=row_id)
        self._records.insert(0, record)
        self.status = when.strftime(STATUS_FORMAT)
        return record

    def remove(self, record: NotificationRecord) -> bool:
        """Remove one record (by identity). Returns False if it is not in the log."""
        for i, r in enumerate(self._records):
            if r is record:
                del self._records[i]
                break
        else:
            return False
        if self._persist and record.id is not None:
            try:
                store.delete_notice(record.id)
            except Exception as e:
                log.warning("Failed to delete notice %s: %s", record.id, e)
        if not self._records:
            self.status = ""
        return True

    def clear(self) -> None:
        self._records.clear()
        self.status = ""
        if self._persist:
            try:
                store.clear_notices()
            except Exception as e:
                log.warning("Failed to clear notice history: %s", e)

    def restore(self, limit: int = 500) -> int:
        """Load persisted history (newest first). Returns the number of records loaded."""
        if not self._persist:
            return 0
        try:
            rows = store.load_notices(limit)
        except Exception as e:
            log.warning("Failed to load notice history: %s", e)
            return 0
        self._records = [
            NotificationRecord(text=text, received_at=datetime.fromtimestamp(ts), id=row_id)
            for row_id, ts, text in rows
        ]
        if self._records:
            self.status = self._records[0].received_at.strftime(STATUS_FORMAT)
        log.info("Restored %s notices from history", len(self._records))
        return len(self._records)
