# obo_ingest/ingestion/batching.py
import logging
from typing import Any, Iterable, List

from obo_ingest.sinks.base import Sink

logger = logging.getLogger(__name__)

# Log an INFO progress line every this many batches
PROGRESS_EVERY_BATCHES = 20


class BatchAccumulator:
    """
    Buffers emitted items and hands them to a sink in fixed-size batches.

    A batch is sent the moment the buffer reaches `batch_size`, so every
    batch but the last has exactly `batch_size` items. `flush()` sends the
    remainder and must be called at end of input.
    """

    def __init__(self, sink: Sink, destination: str, batch_size: int):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.sink = sink
        self.destination = destination
        self.batch_size = batch_size
        self._pending: List[Any] = []
        self.batches_sent = 0
        self.items_sent = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, items: Iterable[Any]) -> None:
        for item in items:
            self._pending.append(item)
            if len(self._pending) >= self.batch_size:
                self._send()

    def flush(self) -> None:
        if self._pending:
            self._send()

    def _send(self) -> None:
        batch = self._pending
        # Errors propagate; the run is aborted and the batch is not retried here.
        self.sink.write_batch(self.destination, batch)
        self._pending = []
        self.batches_sent += 1
        self.items_sent += len(batch)
        logger.debug(f"Sent batch {self.batches_sent} ({len(batch)} items) to {self.destination}")
        if self.batches_sent % PROGRESS_EVERY_BATCHES == 0:
            logger.info(f"  ...sent {self.items_sent} items in {self.batches_sent} batches to {self.destination}")
