# obo_ingest/ingestion/xsd_source.py
"""
Search documents from a Darwin Core XML schema (tdwg_dwc_simple.xsd).

The schema has no labels of its own: every `<xs:element ref="dwc:occurrenceID"/>`
under the record element becomes one document keyed `dwc_occurrenceID`, with
the local name as English label. Japanese labels come from a companion XML
file keyed by term URI (see `load_xsd_translations`).
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional

from tqdm import tqdm

from obo_ingest.config import (
    IngestConfig,
    XSD_ONTOLOGY_TAG,
    XSD_RECORD_ELEMENT,
    XSD_TERM_NAMESPACES,
)
from obo_ingest.ingestion.batching import BatchAccumulator
from obo_ingest.ingestion.dedup import DedupLedger
from obo_ingest.ingestion.pipeline import MODE_DOCUMENTS, RunStats
from obo_ingest.sinks.base import Sink
from obo_ingest.utils.ontology_utils import PLAIN_KEY_RE

logger = logging.getLogger(__name__)

XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"
RDF_ABOUT = "{http://www.w3.org/1999/02/22-rdf-syntax-ns#}about"


def local_name(tag: str) -> str:
    """'{http://www.w3.org/2001/XMLSchema}element' -> 'element'"""
    return tag.rsplit("}", 1)[-1]


def xsd_term_uri(ref: str, term_namespaces: Mapping[str, str] = XSD_TERM_NAMESPACES) -> str:
    """'dwc:occurrenceID' -> 'http://rs.tdwg.org/dwc/terms/occurrenceID'; '' for unknown prefixes."""
    prefix, _, name = ref.partition(":")
    base = term_namespaces.get(prefix)
    return base + name if base and name else ""


def iter_xsd_refs(path: Path, record_element: str = XSD_RECORD_ELEMENT) -> Iterator[str]:
    """Yields the `ref` of every element declared inside `record_element`, in file order."""
    root = ET.parse(str(path)).getroot()
    for element in root:
        if local_name(element.tag) != "element" or element.get("name") != record_element:
            continue
        for child in element.iter():
            if child is element or local_name(child.tag) != "element":
                continue
            ref = child.get("ref")
            if ref:
                yield ref


def load_xsd_translations(path: Optional[Path],
                          term_namespaces: Mapping[str, str] = XSD_TERM_NAMESPACES) -> Dict[str, str]:
    """
    Loads {term URI: Japanese label} from the companion schema.

    An element contributes when it names a term, either with `rdf:about`
    (a full URI) or with `ref`/`name` ("dwc:occurrenceID"), and has a
    descendant marked xml:lang="ja" with text. Missing or malformed files
    give {}.
    """
    if not path:
        return {}
    try:
        root = ET.parse(str(path)).getroot()
    except (OSError, ET.ParseError) as e:
        logger.warning(f"Failed to load Japanese labels from {path}: {e} (continuing without JA)")
        return {}

    table: Dict[str, str] = {}
    for element in root.iter():
        uri = element.get(RDF_ABOUT)
        if not uri:
            ref = element.get("ref") or element.get("name") or ""
            uri = xsd_term_uri(ref, term_namespaces)
        if not uri or uri in table:
            continue
        for child in element.iter():
            if child is not element and child.get(XML_LANG) == "ja" and child.text and child.text.strip():
                table[uri] = child.text.strip()
                break
    logger.info(f"Loaded {len(table)} Japanese terms from {path}")
    return table


def xsd_term_to_document(ref: str, translations: Optional[Mapping[str, str]] = None,
                         term_namespaces: Mapping[str, str] = XSD_TERM_NAMESPACES) -> Optional[Dict[str, Any]]:
    """Flattens one `prefix:localName` ref into a search document, or None if unusable."""
    parts = ref.split(":")
    if len(parts) != 2 or not all(parts):
        logger.debug(f"Skipping XSD ref without a single prefix: {ref!r}")
        return None
    prefix, name = parts
    key = f"{prefix}_{name}"
    if not PLAIN_KEY_RE.match(key):
        logger.debug(f"Skipping XSD ref not usable as a document key: {ref!r}")
        return None

    uri = xsd_term_uri(ref, term_namespaces)
    ja = (translations or {}).get(uri, "") if uri else ""
    synonyms = [ref]
    if ja:
        synonyms.append(ja)
    return {
        "id": key,
        "curie": ref,
        "uri": uri,
        "label": ja or name,
        "en": name,
        "ja": ja,
        "synonyms": synonyms,
        "ontology": XSD_ONTOLOGY_TAG,
    }


def run_xsd_ingestion(path: Path, sink: Sink, destination: str, mode: str,
                      cfg: IngestConfig,
                      normalizer=None,
                      translations: Optional[Mapping[str, str]] = None,
                      batch_size: Optional[int] = None,
                      show_progress: bool = False) -> RunStats:
    """
    Streams the terms of one XSD file into `destination` as documents.

    Takes the same arguments as `run_ingestion` so `load_with_retry` can
    drive either; `normalizer` is unused.
    """
    if mode != MODE_DOCUMENTS:
        raise ValueError(f"XSD sources only produce documents, not '{mode}'")
    if batch_size is None:
        batch_size = cfg.document_batch_size

    stats = RunStats()
    ledger = DedupLedger()
    batcher = BatchAccumulator(sink, destination, batch_size)

    logger.info(f"Ingesting {path} -> {sink.name}:{destination} (xsd, batch_size={batch_size})")
    refs = tqdm(iter_xsd_refs(Path(path), cfg.xsd_record_element),
                desc=Path(path).name, unit=" terms", disable=not show_progress)
    for ref in refs:
        stats.records += 1
        doc = xsd_term_to_document(ref, translations)
        if doc is None:
            stats.inert += 1
            continue
        if not ledger.admit(doc["id"]):
            stats.duplicates += 1
            continue
        stats.emitted += 1
        batcher.submit([doc])
    batcher.flush()

    stats.items = batcher.items_sent
    stats.batches = batcher.batches_sent
    logger.info(f"Finished {Path(path).name}: {stats.emitted} terms in {stats.batches} batches.")
    return stats
