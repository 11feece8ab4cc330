# obo_ingest/ingestion/dedup.py
from typing import Set


class DedupLedger:
    """Subjects already emitted in the current run. First occurrence wins."""

    def __init__(self):
        self._seen: Set[str] = set()
        self.rejected = 0

    def admit(self, subject: str) -> bool:
        if subject in self._seen:
            self.rejected += 1
            return False
        self._seen.add(subject)
        return True

    def __contains__(self, subject: str) -> bool:
        return subject in self._seen

    def __len__(self) -> int:
        return len(self._seen)
