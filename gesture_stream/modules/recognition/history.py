"""
Bounded detection history and its JSON export format.

The export is exactly a JSON array of ``{gesture, confidence, timestamp}``
records (timestamp in epoch milliseconds), with no wrapper object, so an
exported file can be imported again unchanged.
"""

import json
import logging
from collections import deque
from typing import Iterable, List, Optional

from gesture_stream.core.types import HistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 20


class PredictionHistory:
    """Insertion-ordered, bounded sequence of HistoryEntry records."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY, entries: Iterable[HistoryEntry] = ()):
        if capacity < 1:
            raise ValueError("History capacity must be >= 1, got %r" % capacity)
        self._entries = deque(entries, maxlen=capacity)

    def append(self, entry: HistoryEntry):
        self._entries.append(entry)

    def clear(self):
        self._entries.clear()

    @property
    def last(self) -> Optional[HistoryEntry]:
        return self._entries[-1] if self._entries else None

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def entries(self) -> List[HistoryEntry]:
        """Snapshot copy, oldest first."""
        return list(self._entries)

    def replace(self, entries: Iterable[HistoryEntry]):
        """Replace the contents, keeping only the newest ``capacity`` entries."""
        self._entries = deque(entries, maxlen=self._entries.maxlen)

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    def to_json(self, indent: int = 2) -> str:
        return history_to_json(self._entries, indent=indent)


def history_to_json(entries: Iterable[HistoryEntry], indent: int = 2) -> str:
    """Serialize entries to the export format."""
    return json.dumps([entry.to_dict() for entry in entries], indent=indent)


def history_from_json(text: str) -> List[HistoryEntry]:
    """Parse the export format back into entries.

    Raises:
        ValueError: not a JSON array of records, or an unknown label
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("History export must be a JSON array, got %s" % type(data).__name__)
    entries = []
    for i, record in enumerate(data):
        if not isinstance(record, dict):
            raise ValueError("History record %d is not an object" % i)
        try:
            entries.append(HistoryEntry.from_dict(record))
        except KeyError as e:
            raise ValueError("History record %d is missing %s" % (i, e)) from None
    return entries
