"""
Repository for processing history.

The extraction core keeps nothing between calls; remembering what was
processed is a service-layer concern. This module implements the
repository pattern so the API layer asks for records in domain terms and
never cares where they're kept.

Only an in-memory implementation exists. A database-backed one would
implement the same protocol.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessingRecord:
    """One successfully processed extraction request."""
    video_url: str
    timestamps: tuple[int, ...]
    colors: tuple[str, ...] = ()
    id: UUID = field(default_factory=uuid4)
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class HistoryRepository(Protocol):
    """Interface for processing history storage."""

    async def save_processing_record(self, record: ProcessingRecord) -> None:
        """Persist one record."""
        ...

    async def get_processing_history(self, video_url: str) -> list[ProcessingRecord]:
        """All records for a video URL, oldest first."""
        ...

    async def clear_history(self) -> None:
        """Remove every record."""
        ...


class InMemoryHistoryRepository:
    """
    History kept in a dict for the life of the process.

    Fine for a single instance and for tests. Records vanish on restart.
    """

    def __init__(self) -> None:
        self._records: dict[UUID, ProcessingRecord] = {}
        logger.info("Initialized in-memory processing history")

    async def save_processing_record(self, record: ProcessingRecord) -> None:
        self._records[record.id] = record
        logger.debug(
            "Saved processing record",
            extra={"record_id": str(record.id), "timestamp_count": len(record.timestamps)},
        )

    async def get_processing_history(self, video_url: str) -> list[ProcessingRecord]:
        records = [r for r in self._records.values() if r.video_url == video_url]
        return sorted(records, key=lambda r: r.processed_at)

    async def clear_history(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
