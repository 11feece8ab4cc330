# obo_ingest/main.py
import argparse
import logging
import sys
import xml.etree.ElementTree as ET
from typing import List

from obo_ingest.config import SEARCH_FILTERABLE_ATTRIBUTES, IngestConfig
from obo_ingest.ingestion.pipeline import (
    MODE_DOCUMENTS,
    MODE_TRIPLES,
    load_translations,
    load_with_retry,
    make_normalizer,
    run_ingestion,
)
from obo_ingest.ingestion.xsd_source import load_xsd_translations, run_xsd_ingestion
from obo_ingest.sinks import (
    MeilisearchSink,
    SinkError,
    create_search_sink,
    create_triple_sink,
    wait_for_store,
)
from obo_ingest.utils.logging_config import setup_run_logging

# Get a logger instance for this module
logger = logging.getLogger(__name__)

# Unreadable input fails that ontology only; the run moves on to the next one
READ_ERRORS = (UnicodeDecodeError, OSError, ET.ParseError)


def load_graphs(cfg: IngestConfig, names: List[str], batch_size: int = None,
                wait: bool = True, show_progress: bool = True) -> int:
    """Loads each ontology into its named graph. Returns the number of failures."""
    sink = create_triple_sink(cfg)
    normalizer = make_normalizer(cfg)
    failures = 0
    try:
        if wait:
            wait_for_store(cfg.fuseki_base_url, cfg.store_wait_attempts, cfg.retry_delay)

        for name in names:
            config_data = cfg.ontologies[name]
            ontology_path = config_data['path']
            graph_uri = config_data.get('graph_uri')

            if config_data.get('format', 'obo') != 'obo' or not graph_uri:
                logger.info(f"'{name}' has no named graph (search index only); skipping load.")
                continue
            if not ontology_path.exists():
                logger.warning(f"File not found: {ontology_path} (skipping '{name}')")
                continue

            logger.info(f"Loading {ontology_path.name} into graph <{graph_uri}>...")
            try:
                load_with_retry(ontology_path, sink, graph_uri, MODE_TRIPLES, cfg,
                                normalizer=normalizer, batch_size=batch_size,
                                show_progress=show_progress)
                logger.info(f"Loaded {ontology_path.name} successfully.")
            except SinkError as e:
                failures += 1
                logger.error(f"Failed to load {ontology_path.name}: {e}")
            except READ_ERRORS as e:
                failures += 1
                logger.error(f"Could not read {ontology_path.name}: {e}")
    finally:
        sink.close()
    return failures


def index_documents(cfg: IngestConfig, names: List[str], backend: str = None,
                    batch_size: int = None, wait: bool = True,
                    show_progress: bool = True) -> int:
    """Indexes each ontology's terms into its search index. Returns the number of failures."""
    sink = create_search_sink(cfg, backend)
    normalizer = make_normalizer(cfg)
    translations = load_translations(cfg.ja_labels_path)
    failures = 0
    try:
        if isinstance(sink, MeilisearchSink):
            if wait:
                wait_for_store(f"{sink.base_url}/health", cfg.store_wait_attempts, cfg.retry_delay)
            for uid in sorted({cfg.ontologies[n]['search_index'] for n in names}):
                sink.configure_index(uid, SEARCH_FILTERABLE_ATTRIBUTES)

        # Several ontologies may share one index, so clear each index only once.
        cleared = set()
        for name in names:
            config_data = cfg.ontologies[name]
            ontology_path = config_data['path']
            target_index = config_data['search_index']

            if not ontology_path.exists():
                logger.warning(f"File not found: {ontology_path} (skipping '{name}')")
                continue

            if config_data.get('format', 'obo') == 'xsd':
                runner = run_xsd_ingestion
                file_translations = load_xsd_translations(config_data.get('ja_labels_path'))
            else:
                runner = run_ingestion
                file_translations = translations

            logger.info(f"Processing {ontology_path.name} -> Index: [{target_index}]")
            options = dict(normalizer=normalizer, translations=file_translations,
                           batch_size=batch_size, show_progress=show_progress)
            try:
                if target_index in cleared:
                    stats = runner(ontology_path, sink, target_index, MODE_DOCUMENTS, cfg, **options)
                else:
                    stats = load_with_retry(ontology_path, sink, target_index, MODE_DOCUMENTS, cfg,
                                            runner=runner, **options)
                    cleared.add(target_index)
                logger.info(f"Finished {ontology_path.name}. Total indexed: {stats.items} terms.")
            except SinkError as e:
                failures += 1
                logger.error(f"Failed to index {ontology_path.name}: {e}")
            except READ_ERRORS as e:
                failures += 1
                logger.error(f"Could not read {ontology_path.name}: {e}")
    finally:
        sink.close()
    return failures


def main(argv: List[str] = None) -> int:
    cfg = IngestConfig.from_env()

    parser = argparse.ArgumentParser(description="Load OBO ontologies into the graph store and the search index.")
    parser.add_argument("command", choices=["load", "index", "all"],
                        help="'load' writes triples to the graph store, 'index' writes search documents, 'all' does both.")
    parser.add_argument("--ontology", action="append", choices=sorted(cfg.ontologies.keys()),
                        help="Ontology to process (repeatable). Default: all configured ontologies.")
    parser.add_argument("--backend", choices=["meilisearch", "whoosh"], default=None,
                        help=f"Search index backend (default: {cfg.search_backend}).")
    parser.add_argument("--batch-size", type=int, default=None,
                        help="Override the configured batch size.")
    parser.add_argument("--no-wait", action="store_true", help="Do not wait for the stores to become ready.")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bars.")
    args = parser.parse_args(argv)

    setup_run_logging(f"{args.command}_{'-'.join(args.ontology or ['all'])}")

    names = args.ontology or list(cfg.ontologies.keys())
    wait = not args.no_wait
    show_progress = not args.no_progress
    logger.info(f"Starting '{args.command}' for ontologies: {', '.join(names)}")

    failures = 0
    try:
        if args.command in ("load", "all"):
            failures += load_graphs(cfg, names, args.batch_size, wait, show_progress)
        if args.command in ("index", "all"):
            failures += index_documents(cfg, names, args.backend, args.batch_size, wait, show_progress)
    except SinkError as e:
        logger.error(f"Aborted: {e}")
        return 1

    if failures:
        logger.error(f"{failures} ontology run(s) failed.")
        return 1
    logger.info("All tasks completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
