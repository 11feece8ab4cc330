import json

import pytest
import requests
from rdflib import Literal, URIRef

from obo_ingest.config import OWL_NS, RDF_NS, RDFS_NS
from obo_ingest.ingestion.records import Triple
from obo_ingest.sinks import create_search_sink, create_triple_sink
from obo_ingest.sinks.base import SinkError, wait_for_store
from obo_ingest.sinks.meilisearch import MeilisearchSink
from obo_ingest.sinks.sparql import (
    SparqlUpdateSink,
    build_clear_query,
    build_insert_query,
    serialize_triple,
)
from obo_ingest.sinks.whoosh_index import WhooshIndexSink

from obo_ingest.tests.conftest import OBO, FakeResponse, FakeSession

GRAPH = "http://my-db.org/ontology/pato"
RED = URIRef(OBO + "PATO_0000014")


def test_serialize_triple_escapes_literals():
    assert serialize_triple(Triple(RED, RDF_NS.type, OWL_NS.Class)) == (
        f"<{OBO}PATO_0000014> <http://www.w3.org/1999/02/22-rdf-syntax-ns#type> "
        "<http://www.w3.org/2002/07/owl#Class> ."
    )
    line = serialize_triple(Triple(RED, RDFS_NS.label, Literal('say "red"\\now')))
    assert line.endswith('"say \\"red\\"\\\\now" .')
    tagged = serialize_triple(Triple(RED, RDFS_NS.label, Literal("赤", lang="ja")))
    assert tagged.endswith('"赤"@ja .')


def test_multiline_label_survives_into_query():
    label = Literal("line one\nline two\r")
    query = build_insert_query(GRAPH, [Triple(RED, RDFS_NS.label, label)])
    assert "line one\nline two\\r" in query
    assert query.count('"""') == 2


def test_build_queries():
    query = build_insert_query(GRAPH, [Triple(RED, RDF_NS.type, OWL_NS.Class)])
    assert query.startswith(f"INSERT DATA {{ GRAPH <{GRAPH}> {{\n<{OBO}PATO_0000014>")
    assert query.endswith("\n} }")
    assert build_clear_query(GRAPH) == f"CLEAR SILENT GRAPH <{GRAPH}>"


def test_sparql_sink_posts_update_with_basic_auth():
    session = FakeSession()
    sink = SparqlUpdateSink("http://fuseki/ds/update", "admin", "secret", timeout=7, session=session)
    sink.write_batch(GRAPH, [Triple(RED, RDF_NS.type, OWL_NS.Class)])
    sink.clear(GRAPH)

    assert session.auth == ("admin", "secret")
    (method, url, kwargs), (_, _, clear_kwargs) = session.calls
    assert (method, url) == ("POST", "http://fuseki/ds/update")
    assert kwargs["timeout"] == 7
    assert kwargs["headers"]["Content-Type"].startswith("application/sparql-update")
    assert kwargs["data"].decode("utf-8").startswith("INSERT DATA")
    assert clear_kwargs["data"].decode("utf-8") == build_clear_query(GRAPH)


def test_sparql_sink_skips_empty_batches():
    session = FakeSession()
    SparqlUpdateSink("http://fuseki/ds/update", session=session).write_batch(GRAPH, [])
    assert session.calls == []


def test_sparql_sink_error_carries_status_and_sample():
    session = FakeSession([FakeResponse(400, "Parse error")])
    sink = SparqlUpdateSink("http://fuseki/ds/update", session=session)
    with pytest.raises(SinkError) as excinfo:
        sink.write_batch(GRAPH, [Triple(RED, RDF_NS.type, OWL_NS.Class)] * 50)
    err = excinfo.value
    assert err.status == 400
    assert err.body == "Parse error"
    assert err.request_sample.startswith("INSERT DATA")
    assert len(err.request_sample) == 500


def test_sparql_sink_wraps_transport_errors():
    session = FakeSession([requests.ConnectionError("refused")])
    sink = SparqlUpdateSink("http://fuseki/ds/update", session=session)
    with pytest.raises(SinkError) as excinfo:
        sink.clear(GRAPH)
    assert excinfo.value.status is None
    assert "refused" in str(excinfo.value)


def test_meilisearch_sink_adds_documents_with_primary_key():
    session = FakeSession([FakeResponse(202, "{}")])
    sink = MeilisearchSink("http://meili:7700/", "masterKey", session=session)
    docs = [{"id": "PATO_0000014", "label": "red", "ja": "赤"}]
    sink.write_batch("ontology", docs)

    assert session.headers["Authorization"] == "Bearer masterKey"
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://meili:7700/indexes/ontology/documents")
    assert kwargs["params"] == {"primaryKey": "id"}
    assert json.loads(kwargs["data"].decode("utf-8")) == docs


def test_meilisearch_sink_clear_and_configure():
    session = FakeSession([
        FakeResponse(202),
        FakeResponse(409, "index_already_exists"),
        FakeResponse(202),
    ])
    sink = MeilisearchSink("http://meili:7700", session=session)
    sink.clear("ontology")
    sink.configure_index("ontology", ["ontology", "label", "id"])

    assert [(m, u) for m, u, _ in session.calls] == [
        ("DELETE", "http://meili:7700/indexes/ontology/documents"),
        ("POST", "http://meili:7700/indexes"),
        ("PUT", "http://meili:7700/indexes/ontology/settings/filterable-attributes"),
    ]
    assert json.loads(session.calls[2][2]["data"]) == ["ontology", "label", "id"]


def test_meilisearch_sink_server_error():
    session = FakeSession([FakeResponse(500, "internal")])
    sink = MeilisearchSink("http://meili:7700", session=session)
    with pytest.raises(SinkError) as excinfo:
        sink.write_batch("ontology", [{"id": "x"}])
    assert excinfo.value.status == 500


def test_meilisearch_write_waits_for_task(no_sleep):
    session = FakeSession([
        FakeResponse(202, '{"taskUid": 7, "status": "enqueued"}'),
        FakeResponse(200, '{"uid": 7, "status": "processing"}'),
        FakeResponse(200, '{"uid": 7, "status": "succeeded"}'),
    ])
    sink = MeilisearchSink("http://meili:7700", session=session, task_poll_interval=0.1)
    sink.write_batch("ontology", [{"id": "PATO_0000014"}])

    assert [(m, u) for m, u, _ in session.calls] == [
        ("POST", "http://meili:7700/indexes/ontology/documents"),
        ("GET", "http://meili:7700/tasks/7"),
        ("GET", "http://meili:7700/tasks/7"),
    ]
    assert no_sleep == [0.1]


def test_meilisearch_failed_task_raises(no_sleep):
    session = FakeSession([
        FakeResponse(202, '{"taskUid": 8}'),
        FakeResponse(200, '{"uid": 8, "status": "failed", "error": {"message": "invalid document id"}}'),
    ])
    sink = MeilisearchSink("http://meili:7700", session=session)
    with pytest.raises(SinkError) as excinfo:
        sink.write_batch("ontology", [{"id": "bad/id"}])
    assert "invalid document id" in str(excinfo.value)


def test_meilisearch_task_still_pending_raises(no_sleep):
    session = FakeSession([FakeResponse(202, '{"taskUid": 9}')] +
                          [FakeResponse(200, '{"status": "processing"}')] * 3)
    sink = MeilisearchSink("http://meili:7700", session=session, task_poll_attempts=3)
    with pytest.raises(SinkError):
        sink.clear("ontology")
    assert len(no_sleep) == 2


def test_wait_for_store_retries_until_ready(no_sleep):
    session = FakeSession([requests.ConnectionError("down"), FakeResponse(503), FakeResponse(200)])
    wait_for_store("http://fuseki:3030", attempts=5, delay=0.25, session=session)
    assert len(session.calls) == 3
    assert no_sleep == [0.25, 0.25]


def test_wait_for_store_gives_up(no_sleep):
    session = FakeSession([FakeResponse(503)] * 3)
    with pytest.raises(SinkError):
        wait_for_store("http://fuseki:3030", attempts=3, delay=0, session=session)
    assert len(no_sleep) == 2


def test_sink_factories(cfg):
    assert isinstance(create_triple_sink(cfg), SparqlUpdateSink)
    assert isinstance(create_search_sink(cfg, "meilisearch"), MeilisearchSink)
    assert isinstance(create_search_sink(cfg, "whoosh"), WhooshIndexSink)
    with pytest.raises(ValueError):
        create_search_sink(cfg, "solr")
