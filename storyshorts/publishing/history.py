"""
Publication history.

Keeps the list of titles already published so batch runs do not publish
the same story twice. File-backed in production, in-memory in tests.
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) - (.+)$")
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def normalize_title(title: str) -> str:
    """Collapse whitespace and case so cosmetic differences do not matter."""
    return " ".join(title.split()).casefold()


@dataclass
class PublicationRecord:
    title: str
    published_at: datetime


class PublicationHistoryStore(ABC):
    """Abstract publication history."""

    @abstractmethod
    def load(self) -> List[PublicationRecord]:
        """All records, oldest first."""
        pass

    @abstractmethod
    def append(self, title: str, published_at: Optional[datetime] = None) -> PublicationRecord:
        """Record a new publication."""
        pass

    def is_published(self, title: str) -> bool:
        wanted = normalize_title(title)
        return any(normalize_title(record.title) == wanted for record in self.load())


class InMemoryPublicationHistory(PublicationHistoryStore):
    def __init__(self, records: Optional[List[PublicationRecord]] = None):
        self._records = list(records or [])

    def load(self) -> List[PublicationRecord]:
        return list(self._records)

    def append(self, title: str, published_at: Optional[datetime] = None) -> PublicationRecord:
        record = PublicationRecord(title=title.strip(), published_at=published_at or datetime.now())
        self._records.append(record)
        return record


class FilePublicationHistory(PublicationHistoryStore):
    """Append-only text file, one ``YYYY-MM-DD HH:MM:SS - title`` line per record."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> List[PublicationRecord]:
        if not self.path.exists():
            return []

        records = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            match = _LINE_RE.match(line.strip())
            if not match:
                if line.strip():
                    logger.warning(f"[HISTORY] Skipping malformed line: {line[:80]}")
                continue
            records.append(PublicationRecord(
                title=match.group(2).strip(),
                published_at=datetime.strptime(match.group(1), _TIMESTAMP_FORMAT),
            ))
        return records

    def append(self, title: str, published_at: Optional[datetime] = None) -> PublicationRecord:
        record = PublicationRecord(
            title=" ".join(title.split()),
            published_at=(published_at or datetime.now()).replace(microsecond=0),
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(f"{record.published_at.strftime(_TIMESTAMP_FORMAT)} - {record.title}\n")
        logger.info(f"[HISTORY] Recorded publication: {record.title}")
        return record
