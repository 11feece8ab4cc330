# obo_ingest/ingestion/pipeline.py
"""
Streaming OBO ingestion: file -> records -> deduplicated items -> batched sink.

One call to `run_ingestion` is one run: it owns its dedup ledger, its open
record and its batch buffer, so several files can be processed one after
another (or in separate processes) without sharing state.
"""

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from tqdm import tqdm

from obo_ingest.config import IngestConfig
from obo_ingest.ingestion.batching import BatchAccumulator
from obo_ingest.ingestion.block_parser import BlockParser
from obo_ingest.ingestion.dedup import DedupLedger
from obo_ingest.ingestion.records import (
    DEFAULT_GRAMMAR,
    FieldGrammar,
    Record,
    record_to_document,
    record_to_triples,
)
from obo_ingest.ingestion.tokenizer import iter_logical_lines, open_ontology_file
from obo_ingest.sinks.base import Sink, SinkError
from obo_ingest.utils.ontology_utils import IdentifierNormalizer

logger = logging.getLogger(__name__)

MODE_TRIPLES = "triples"
MODE_DOCUMENTS = "documents"


@dataclass
class RunStats:
    records: int = 0
    emitted: int = 0
    duplicates: int = 0
    inert: int = 0
    items: int = 0
    batches: int = 0


def make_normalizer(cfg: IngestConfig) -> IdentifierNormalizer:
    return IdentifierNormalizer(cfg.base_namespace, cfg.legacy_prefixes)


def block_kinds_for(mode: str, cfg: IngestConfig) -> Sequence[str]:
    if mode == MODE_TRIPLES:
        return cfg.triple_block_kinds
    if mode == MODE_DOCUMENTS:
        return cfg.document_block_kinds
    raise ValueError(f"Unknown emission mode: '{mode}'. Valid options are '{MODE_TRIPLES}', '{MODE_DOCUMENTS}'.")


def load_translations(path: Optional[Path]) -> Dict[str, str]:
    """Loads a {curie: label} JSON table. Missing or unreadable files give {}."""
    if not path:
        return {}
    try:
        with Path(path).open('r', encoding='utf-8') as f:
            table = json.load(f)
        logger.info(f"Loaded {len(table)} translated labels from {path}")
        return table
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to load translations from {path}: {e} (continuing without them)")
        return {}


def iter_item_sets(lines: Iterable[str], mode: str, normalizer: IdentifierNormalizer,
                   accepted_kinds: Sequence[str],
                   translations: Optional[Mapping[str, str]] = None,
                   grammar: FieldGrammar = DEFAULT_GRAMMAR,
                   stats: Optional[RunStats] = None) -> Iterator[List[Any]]:
    """
    Yields one item list per admitted record, in file order.

    Triples mode yields lists of `Triple`; documents mode yields a
    one-element list holding the document dict. Later records repeating an
    already-emitted id are dropped whole.
    """
    if mode not in (MODE_TRIPLES, MODE_DOCUMENTS):
        raise ValueError(f"Unknown emission mode: '{mode}'")
    stats = stats if stats is not None else RunStats()
    ledger = DedupLedger()
    parser = BlockParser(accepted_kinds, normalizer, grammar)

    def emit(record: Record) -> Optional[List[Any]]:
        stats.records += 1
        if not ledger.admit(record.id):
            stats.duplicates += 1
            logger.debug(f"Skipping repeated block for {record.id}")
            return None
        stats.emitted += 1
        if mode == MODE_TRIPLES:
            return record_to_triples(record)
        return [record_to_document(record, normalizer, translations)]

    for line in iter_logical_lines(lines):
        record = parser.feed(line)
        if record is not None:
            items = emit(record)
            if items:
                yield items
    record = parser.close()
    if record is not None:
        items = emit(record)
        if items:
            yield items
    stats.inert = parser.inert_blocks


def run_ingestion(path: Path, sink: Sink, destination: str, mode: str,
                  cfg: IngestConfig,
                  normalizer: Optional[IdentifierNormalizer] = None,
                  translations: Optional[Mapping[str, str]] = None,
                  batch_size: Optional[int] = None,
                  show_progress: bool = False) -> RunStats:
    """
    Streams one ontology file into `destination`.

    Raises SinkError on the first failed flush; batches already sent stay
    in the destination.
    """
    normalizer = normalizer or make_normalizer(cfg)
    if batch_size is None:
        batch_size = cfg.triple_batch_size if mode == MODE_TRIPLES else cfg.document_batch_size
    accepted_kinds = block_kinds_for(mode, cfg)

    stats = RunStats()
    batcher = BatchAccumulator(sink, destination, batch_size)

    logger.info(f"Ingesting {path} -> {sink.name}:{destination} (mode={mode}, batch_size={batch_size})")
    with open_ontology_file(Path(path)) as f:
        lines = tqdm(f, desc=Path(path).name, unit=" lines", disable=not show_progress)
        for items in iter_item_sets(lines, mode, normalizer, accepted_kinds,
                                    translations=translations, stats=stats):
            batcher.submit(items)
        batcher.flush()

    stats.items = batcher.items_sent
    stats.batches = batcher.batches_sent
    logger.info(
        f"Finished {Path(path).name}: {stats.emitted} records emitted, "
        f"{stats.duplicates} duplicates skipped, {stats.inert} blocks without a valid id, "
        f"{stats.items} items in {stats.batches} batches."
    )
    return stats


def clear_with_retry(sink: Sink, destination: str, retries: int = 3, delay: float = 1.0) -> bool:
    """Clears `destination`, retrying on SinkError. Returns False if every attempt failed."""
    for attempt in range(1, retries + 1):
        try:
            sink.clear(destination)
            logger.info(f"Cleared {sink.name}:{destination}")
            return True
        except SinkError as e:
            logger.warning(f"Clear of {destination} failed (attempt {attempt}/{retries}): {e}")
            if attempt < retries:
                time.sleep(delay)
    return False


def load_with_retry(path: Path, sink: Sink, destination: str, mode: str,
                    cfg: IngestConfig,
                    runner: Callable[..., RunStats] = run_ingestion,
                    **kwargs) -> RunStats:
    """
    Reset-and-reload: clear `destination`, then ingest the whole file.

    A failed run is retried from the clear, up to `cfg.load_attempts` times
    with `cfg.retry_delay` between attempts. A failed clear is only logged.
    `runner` is `run_ingestion` for OBO files; other sources pass their own.
    Errors reading the input are not retried.
    """
    attempts = max(1, cfg.load_attempts)
    last_error: Optional[SinkError] = None
    for attempt in range(1, attempts + 1):
        if not clear_with_retry(sink, destination, cfg.clear_retries, cfg.retry_delay):
            logger.warning(f"Failed to clear {destination}; loading on top of existing data.")
        try:
            return runner(path, sink, destination, mode, cfg, **kwargs)
        except SinkError as e:
            last_error = e
            logger.error(f"Load of {path} failed (attempt {attempt}/{attempts}): {e}")
            if attempt < attempts:
                time.sleep(cfg.retry_delay)
    raise last_error
