"""
Streaming ingestion pipeline for OBO ontologies.

Functions read defaults from an `IngestConfig` (see config.py) but accept
optional parameters for per-run overrides.

Usage:
    from obo_ingest.config import IngestConfig
    from obo_ingest.ingestion import load_with_retry, MODE_TRIPLES
    from obo_ingest.sinks import SparqlUpdateSink

    cfg = IngestConfig.from_env()
    sink = SparqlUpdateSink(cfg.fuseki_update_url, cfg.fuseki_user, cfg.fuseki_password)
    load_with_retry(path, sink, "http://my-db.org/ontology/pato", MODE_TRIPLES, cfg)
"""

from obo_ingest.ingestion.batching import BatchAccumulator
from obo_ingest.ingestion.block_parser import BlockParser, BlockState, parse_records
from obo_ingest.ingestion.dedup import DedupLedger
from obo_ingest.ingestion.pipeline import (
    MODE_DOCUMENTS,
    MODE_TRIPLES,
    RunStats,
    clear_with_retry,
    iter_item_sets,
    load_with_retry,
    run_ingestion,
)
from obo_ingest.ingestion.records import Record, RecordBuilder, Triple
from obo_ingest.ingestion.tokenizer import iter_logical_lines, strip_comment
from obo_ingest.ingestion.xsd_source import load_xsd_translations, run_xsd_ingestion

__all__ = [
    "BatchAccumulator",
    "BlockParser",
    "BlockState",
    "DedupLedger",
    "MODE_DOCUMENTS",
    "MODE_TRIPLES",
    "Record",
    "RecordBuilder",
    "RunStats",
    "Triple",
    "clear_with_retry",
    "iter_item_sets",
    "iter_logical_lines",
    "load_with_retry",
    "load_xsd_translations",
    "parse_records",
    "run_ingestion",
    "run_xsd_ingestion",
    "strip_comment",
]
