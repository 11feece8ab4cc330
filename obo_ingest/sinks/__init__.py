from obo_ingest.config import IngestConfig
from obo_ingest.sinks.base import Sink, SinkError, wait_for_store
from obo_ingest.sinks.meilisearch import MeilisearchSink
from obo_ingest.sinks.sparql import SparqlUpdateSink
from obo_ingest.sinks.whoosh_index import WhooshIndexSink


def create_triple_sink(cfg: IngestConfig) -> SparqlUpdateSink:
    return SparqlUpdateSink(
        cfg.fuseki_update_url,
        user=cfg.fuseki_user,
        password=cfg.fuseki_password,
        timeout=cfg.request_timeout,
    )


def create_search_sink(cfg: IngestConfig, backend: str = None) -> Sink:
    """
    Factory for the search-index sink.
    Valid backends are 'meilisearch' and 'whoosh'.
    """
    backend = backend or cfg.search_backend
    if backend == "meilisearch":
        return MeilisearchSink(cfg.meili_url, cfg.meili_key, timeout=cfg.request_timeout)
    elif backend == "whoosh":
        return WhooshIndexSink(cfg.whoosh_index_root)
    else:
        raise ValueError(f"Unknown search backend: '{backend}'. Valid options are 'meilisearch', 'whoosh'.")


__all__ = [
    "MeilisearchSink",
    "Sink",
    "SinkError",
    "SparqlUpdateSink",
    "WhooshIndexSink",
    "create_search_sink",
    "create_triple_sink",
    "wait_for_store",
]
