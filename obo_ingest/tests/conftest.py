import dataclasses
import json

import pytest

from obo_ingest.config import IngestConfig
from obo_ingest.sinks.base import Sink, SinkError
from obo_ingest.utils.ontology_utils import IdentifierNormalizer

OBO = "http://purl.obolibrary.org/obo/"

SAMPLE_OBO = """format-version: 1.2
ontology: pato
! header comment
synonymtypedef: abbreviation "abbreviation"

[Term]
id: PATO:0000014 ! red
name: red
def: "A color hue with high wavelength." [PATOC:cjm]
synonym: "crimson" EXACT []
synonym: "red!ish" RELATED []
is_a: PATO:0000001 ! quality

[Term]
id: PATO:0000015
name: blue
is_a: PATO:0000001 {source="x"} ! quality

[Term]
id: PATO:0000014
name: red again
synonym: "scarlet" EXACT []

[Term]
name: orphan without id

[Typedef]
id: RO:0002470
name: eats
is_a: RO:0002439

[Instance]
id: PATO:9999999
name: ignored instance
"""

SAMPLE_XSD = """<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"
           xmlns:dwc="http://rs.tdwg.org/dwc/terms/"
           xmlns:dcterms="http://purl.org/dc/terms/">
  <xs:element name="SimpleDarwinRecordSet"/>
  <xs:element name="SimpleDarwinRecord">
    <xs:complexType>
      <xs:all>
        <xs:element ref="dcterms:modified" minOccurs="0"/>
        <xs:element ref="dwc:occurrenceID" minOccurs="0"/>
        <xs:element ref="dwc:scientificName" minOccurs="0"/>
        <xs:element ref="dwc:occurrenceID" minOccurs="0"/>
        <xs:element ref="foo:bar:baz" minOccurs="0"/>
        <xs:element ref="abcd:unitID" minOccurs="0"/>
      </xs:all>
    </xs:complexType>
  </xs:element>
</xs:schema>
"""

SAMPLE_XSD_JA = """<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"
           xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">
  <xs:element ref="dwc:occurrenceID">
    <xs:annotation>
      <xs:documentation xml:lang="en">occurrence ID</xs:documentation>
      <xs:documentation xml:lang="ja">出現ID</xs:documentation>
    </xs:annotation>
  </xs:element>
  <rdf:Description rdf:about="http://rs.tdwg.org/dwc/terms/scientificName">
    <label xml:lang="ja">学名</label>
  </rdf:Description>
</xs:schema>
"""


class RecordingSink(Sink):
    """In-memory sink that keeps every batch it receives."""

    name = "memory"

    def __init__(self):
        self.batches = []
        self.cleared = []

    def clear(self, destination):
        self.cleared.append(destination)

    def write_batch(self, destination, items):
        self.batches.append((destination, list(items)))

    @property
    def items(self):
        return [item for _, batch in self.batches for item in batch]


class FlakySink(RecordingSink):
    """Fails the first `clear_failures` clears and the first `write_failures` writes."""

    def __init__(self, clear_failures=0, write_failures=0):
        super().__init__()
        self.clear_failures = clear_failures
        self.write_failures = write_failures
        self.clear_calls = 0
        self.write_calls = 0

    def clear(self, destination):
        self.clear_calls += 1
        if self.clear_calls <= self.clear_failures:
            raise SinkError("status 503: unavailable", status=503)
        super().clear(destination)

    def write_batch(self, destination, items):
        self.write_calls += 1
        if self.write_calls <= self.write_failures:
            raise SinkError("status 500: boom", status=500, request_sample="INSERT DATA")
        super().write_batch(destination, items)


class FakeResponse:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Stands in for requests.Session; records calls and replays canned responses."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.headers = {}
        self.auth = None
        self.closed = False

    def _next(self):
        if not self.responses:
            return FakeResponse()
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self._next()

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._next()

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self._next()

    def close(self):
        self.closed = True


@pytest.fixture
def normalizer():
    return IdentifierNormalizer()


@pytest.fixture
def cfg(tmp_path):
    return dataclasses.replace(
        IngestConfig(),
        triple_batch_size=4,
        document_batch_size=2,
        retry_delay=0.0,
        whoosh_index_root=tmp_path / "whoosh",
    )


@pytest.fixture
def sample_obo(tmp_path):
    path = tmp_path / "pato.obo"
    path.write_text(SAMPLE_OBO, encoding="utf-8")
    return path


@pytest.fixture
def no_sleep(monkeypatch):
    """Records sleeps instead of waiting."""
    delays = []
    monkeypatch.setattr("time.sleep", lambda seconds: delays.append(seconds))
    return delays


@pytest.fixture
def sample_xsd(tmp_path):
    path = tmp_path / "tdwg_dwc_simple.xsd"
    path.write_text(SAMPLE_XSD, encoding="utf-8")
    ja_path = tmp_path / "tdwg_dwc_simple_ja.xsd"
    ja_path.write_text(SAMPLE_XSD_JA, encoding="utf-8")
    return path, ja_path
