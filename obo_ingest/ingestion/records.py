# obo_ingest/ingestion/records.py
"""
Term records and the field grammar that fills them.

A `RecordBuilder` is opened for each accepted block, receives that block's
field lines, and is finalized into an immutable `Record`. Records are turned
into triples (graph store) or a flat document (search index); they never
reference each other except through parent URIs.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple, Union

from rdflib import Literal, URIRef

from obo_ingest.config import OWL_NS, RDF_NS, RDFS_NS, SKOS_NS
from obo_ingest.utils.ontology_utils import (
    IdentifierNormalizer,
    extract_id_token,
    strip_surrounding_quotes,
)

logger = logging.getLogger(__name__)

_UNESCAPE_RE = re.compile(r'\\(.)')


class Triple(NamedTuple):
    subject: URIRef
    predicate: URIRef
    object: Union[URIRef, Literal]


@dataclass(frozen=True)
class FieldGrammar:
    """Field prefixes the builder understands, checked in this order."""
    id_prefix: str = "id:"
    name_prefix: str = "name:"
    parent_prefixes: Tuple[str, ...] = ("is_a:",)
    synonym_prefix: str = "synonym:"
    synonym_re: "re.Pattern" = field(default=re.compile(r'"((?:[^"\\]|\\.)*)"'))


DEFAULT_GRAMMAR = FieldGrammar()


@dataclass(frozen=True)
class Record:
    id: str
    kind: str = "Term"
    label: Optional[str] = None
    synonyms: Tuple[str, ...] = ()
    parents: Tuple[str, ...] = ()


class RecordBuilder:
    """Accumulates the fields of one open block."""

    def __init__(self, kind: str, normalizer: IdentifierNormalizer,
                 grammar: FieldGrammar = DEFAULT_GRAMMAR):
        self.kind = kind
        self.normalizer = normalizer
        self.grammar = grammar
        self.id: Optional[str] = None
        self.inert = False
        self.label: Optional[str] = None
        self.synonyms: List[str] = []
        self.parents: List[str] = []

    def feed(self, line: str) -> None:
        if self.inert:
            return
        g = self.grammar

        if line.startswith(g.id_prefix):
            if self.id is not None:
                logger.debug(f"Ignoring repeated id line in {self.id}: {line!r}")
                return
            uri, ok = self.normalizer.normalize(line[len(g.id_prefix):])
            if ok:
                self.id = uri
            else:
                logger.debug(f"Invalid identifier, skipping block: {line!r}")
                self.inert = True
            return

        if line.startswith(g.name_prefix):
            name = strip_surrounding_quotes(line[len(g.name_prefix):])
            if name:
                self.label = name
            return

        for prefix in g.parent_prefixes:
            if line.startswith(prefix):
                token = extract_id_token(line[len(prefix):])
                if token:
                    uri, ok = self.normalizer.normalize(token)
                    if ok:
                        self.parents.append(uri)
                return

        if line.startswith(g.synonym_prefix):
            m = g.synonym_re.search(line, len(g.synonym_prefix))
            if m:
                synonym = _UNESCAPE_RE.sub(r'\1', m.group(1)).strip()
                if synonym:
                    self.synonyms.append(synonym)

    def finalize(self) -> Optional[Record]:
        """Returns the finished record, or None when the block had no valid id."""
        if self.inert or self.id is None:
            return None
        return Record(
            id=self.id,
            kind=self.kind,
            label=self.label,
            synonyms=tuple(self.synonyms),
            parents=tuple(self.parents),
        )


def record_to_triples(record: Record) -> List[Triple]:
    subject = URIRef(record.id)
    triples = [Triple(subject, RDF_NS.type, OWL_NS.Class)]
    if record.label:
        triples.append(Triple(subject, RDFS_NS.label, Literal(record.label)))
    for parent in record.parents:
        triples.append(Triple(subject, RDFS_NS.subClassOf, URIRef(parent)))
    for synonym in record.synonyms:
        triples.append(Triple(subject, SKOS_NS.altLabel, Literal(synonym)))
    return triples


def record_to_document(record: Record, normalizer: IdentifierNormalizer,
                       translations: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Flattens a record into a search document.

    `id` is `normalizer.document_key(uri)` (PATO_0000014 for OBO terms)
    because search-index primary keys may not contain ':' or '/';
    `curie` carries the display form.
    """
    curie = normalizer.shorten(record.id)
    label = record.label or ""
    ja = (translations or {}).get(curie, "")
    synonyms = list(record.synonyms)
    if ja:
        synonyms.append(ja)
    return {
        "id": normalizer.document_key(record.id),
        "curie": curie,
        "uri": record.id,
        "label": label,
        "en": label,
        "ja": ja,
        "synonyms": synonyms,
        "ontology": normalizer.ontology_tag(record.id),
    }
