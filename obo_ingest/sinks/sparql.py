# obo_ingest/sinks/sparql.py
"""
SPARQL 1.1 Update sink (Apache Jena Fuseki or any compliant endpoint).

Each batch becomes one `INSERT DATA { GRAPH <g> { ... } }` request; clearing
a destination is `CLEAR SILENT GRAPH <g>` over the same transport.
"""

import logging
from typing import Optional, Sequence

import requests
from rdflib import Literal, URIRef

from obo_ingest.ingestion.records import Triple
from obo_ingest.sinks.base import ERROR_SAMPLE_CHARS, Sink, SinkError, check_response

logger = logging.getLogger(__name__)


def serialize_term(term) -> str:
    if isinstance(term, Literal):
        return term.n3()
    return URIRef(term).n3()


def serialize_triple(triple: Triple) -> str:
    s, p, o = triple
    return f"{serialize_term(s)} {serialize_term(p)} {serialize_term(o)} ."


def build_insert_query(graph_uri: str, triples: Sequence[Triple]) -> str:
    body = "\n".join(serialize_triple(t) for t in triples)
    return f"INSERT DATA {{ GRAPH <{graph_uri}> {{\n{body}\n}} }}"


def build_clear_query(graph_uri: str) -> str:
    return f"CLEAR SILENT GRAPH <{graph_uri}>"


class SparqlUpdateSink(Sink):
    name = "sparql"

    def __init__(self, update_url: str, user: str = "", password: str = "",
                 timeout: float = 180.0, session: Optional[requests.Session] = None):
        self.update_url = update_url
        self.timeout = timeout
        self.session = session or requests.Session()
        if user:
            self.session.auth = (user, password)
        logger.info(f"SparqlUpdateSink initialized for endpoint: {self.update_url}")

    def send_update(self, query: str) -> None:
        try:
            resp = self.session.post(
                self.update_url,
                data=query.encode("utf-8"),
                headers={"Content-Type": "application/sparql-update; charset=utf-8"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SinkError(f"SPARQL update request failed: {e}",
                            request_sample=query[:ERROR_SAMPLE_CHARS]) from e
        check_response(resp, query)

    def clear(self, destination: str) -> None:
        self.send_update(build_clear_query(destination))

    def write_batch(self, destination: str, items: Sequence[Triple]) -> None:
        if not items:
            return
        query = build_insert_query(destination, items)
        try:
            self.send_update(query)
        except SinkError as e:
            logger.error(f"Error query sample: {e.request_sample}...")
            raise

    def close(self) -> None:
        self.session.close()
