"""
Processing history persistence.

Records which videos and timestamps were processed. In-memory for now.
"""

from .repository import HistoryRepository, InMemoryHistoryRepository, ProcessingRecord

__all__ = ["HistoryRepository", "InMemoryHistoryRepository", "ProcessingRecord"]
