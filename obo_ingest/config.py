# obo_ingest/config.py
from dataclasses import dataclass, field
from pathlib import Path
from os import getenv
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv
from rdflib import Namespace

# --- Path Configuration (using pathlib) ---

# Project Root Directory
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file in the project root
load_dotenv(PROJECT_ROOT / ".env")

# Data Directory (ontology files, local indexes, etc.)
DATA_DIR = Path(getenv("OBO_DATA_DIR", str(PROJECT_ROOT / "data")))

# Ontologies Directory
ONTOLOGIES_DIR = DATA_DIR / "ontologies"

# Local Whoosh indexes (used when the search backend is 'whoosh')
WHOOSH_INDEX_ROOT = Path(getenv("WHOOSH_INDEX_ROOT", str(DATA_DIR / "whoosh")))

# Optional {curie: japanese label} table merged into search documents
JA_LABELS_PATH = getenv("JA_LABELS_PATH")

# --- Triple Store (SPARQL Update) ---
FUSEKI_BASE_URL = getenv("FUSEKI_BASE_URL", "http://localhost:3030")
FUSEKI_UPDATE_URL = getenv("FUSEKI_UPDATE_URL", f"{FUSEKI_BASE_URL}/biodb/update")
FUSEKI_USER = getenv("FUSEKI_USER", "admin")
FUSEKI_PASSWORD = getenv("FUSEKI_PASSWORD", "")

# --- Search Index (Meilisearch) ---
MEILI_URL = getenv("MEILI_URL", "http://localhost:7700")
MEILI_KEY = getenv("MEILI_KEY", "")
SEARCH_BACKEND = getenv("SEARCH_BACKEND", "meilisearch")  # "meilisearch" or "whoosh"
SEARCH_FILTERABLE_ATTRIBUTES = ["ontology", "label", "id"]

# --- Batching / Retry Configuration ---
TRIPLE_BATCH_SIZE = int(getenv("TRIPLE_BATCH_SIZE", "500"))
DOCUMENT_BATCH_SIZE = int(getenv("DOCUMENT_BATCH_SIZE", "2000"))
REQUEST_TIMEOUT_SECONDS = float(getenv("REQUEST_TIMEOUT_SECONDS", "180"))
CLEAR_RETRIES = 3
LOAD_ATTEMPTS = 2
RETRY_DELAY_SECONDS = 1.0
STORE_WAIT_ATTEMPTS = 30

# Block kinds whose contents become records
TRIPLE_BLOCK_KINDS = ("Term", "Typedef")
DOCUMENT_BLOCK_KINDS = ("Term",)

# --- Namespace Configuration ---
RDFS_NS_STR = "http://www.w3.org/2000/01/rdf-schema#"
RDF_NS_STR = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
OWL_NS_STR = "http://www.w3.org/2002/07/owl#"
SKOS_NS_STR = "http://www.w3.org/2004/02/skos/core#"
OBO_NS_STR = "http://purl.obolibrary.org/obo/"

RDFS_NS = Namespace(RDFS_NS_STR)
RDF_NS = Namespace(RDF_NS_STR)
OWL_NS = Namespace(OWL_NS_STR)
SKOS_NS = Namespace(SKOS_NS_STR)
OBO_NS = Namespace(OBO_NS_STR)

# Named graphs live under this base, one per ontology file
GRAPH_BASE_URI = getenv("GRAPH_BASE_URI", "http://my-db.org/ontology/")

# Legacy prefix -> canonical OBO prefix. The same table drives URI
# expansion and the short display form, so both directions stay in sync.
LEGACY_PREFIX_MAP = {
    "ncbi": "NCBITaxon",
}

# Darwin Core XSD: terms are the `ref`s listed under this record element
XSD_RECORD_ELEMENT = "SimpleDarwinRecord"
XSD_ONTOLOGY_TAG = "DwC"
XSD_TERM_NAMESPACES = {
    "dwc": "http://rs.tdwg.org/dwc/terms/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcterms": "http://purl.org/dc/terms/",
}

# --- Ontology Configuration ---
ONTOLOGIES_CONFIG = {
    'pato': {
        'path': ONTOLOGIES_DIR / "pato.obo",
        'graph_uri': GRAPH_BASE_URI + "pato",
        'search_index': "ontology",
    },
    'ro': {
        'path': ONTOLOGIES_DIR / "ro.obo",
        'graph_uri': GRAPH_BASE_URI + "ro",
        'search_index': "ontology",
    },
    'envo': {
        'path': ONTOLOGIES_DIR / "envo.obo",
        'graph_uri': GRAPH_BASE_URI + "envo",
        'search_index': "ontology",
    },
    'ncbitaxon': {
        'path': ONTOLOGIES_DIR / "ncbitaxon.obo",
        'graph_uri': GRAPH_BASE_URI + "ncbitaxon",
        'search_index': "classification",
    },
    'dwc': {
        'path': ONTOLOGIES_DIR / "tdwg_dwc_simple.xsd",
        'format': "xsd",
        'graph_uri': None,
        'search_index': "dwc",
        'ja_labels_path': ONTOLOGIES_DIR / "tdwg_dwc_simple_ja.xsd",
    },
}

# Logging configuration
LOG_LEVEL = getenv("LOG_LEVEL", "INFO")  # Options: DEBUG, INFO, WARNING, ERROR, CRITICAL
LOGS_DIR = PROJECT_ROOT / "logs"


@dataclass(frozen=True)
class IngestConfig:
    """
    Read-only snapshot of the settings one ingestion run needs.

    Built once at process start (usually via `from_env`) and passed to the
    pipeline and the sinks. Nothing mutates it afterwards.
    """
    fuseki_update_url: str = FUSEKI_UPDATE_URL
    fuseki_user: str = FUSEKI_USER
    fuseki_password: str = FUSEKI_PASSWORD
    meili_url: str = MEILI_URL
    meili_key: str = MEILI_KEY
    search_backend: str = SEARCH_BACKEND
    whoosh_index_root: Path = WHOOSH_INDEX_ROOT
    ja_labels_path: Optional[Path] = None
    base_namespace: str = OBO_NS_STR
    legacy_prefixes: Tuple[Tuple[str, str], ...] = tuple(LEGACY_PREFIX_MAP.items())
    triple_batch_size: int = TRIPLE_BATCH_SIZE
    document_batch_size: int = DOCUMENT_BATCH_SIZE
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    clear_retries: int = CLEAR_RETRIES
    load_attempts: int = LOAD_ATTEMPTS
    retry_delay: float = RETRY_DELAY_SECONDS
    store_wait_attempts: int = STORE_WAIT_ATTEMPTS
    triple_block_kinds: Tuple[str, ...] = TRIPLE_BLOCK_KINDS
    document_block_kinds: Tuple[str, ...] = DOCUMENT_BLOCK_KINDS
    xsd_record_element: str = XSD_RECORD_ELEMENT
    ontologies: Dict[str, Dict] = field(default_factory=lambda: dict(ONTOLOGIES_CONFIG))

    @classmethod
    def from_env(cls) -> "IngestConfig":
        """Snapshot the module-level settings (already read from the environment)."""
        return cls(
            ja_labels_path=Path(JA_LABELS_PATH) if JA_LABELS_PATH else None,
        )

    @property
    def fuseki_base_url(self) -> str:
        # http://host:3030/biodb/update -> http://host:3030
        return self.fuseki_update_url.rsplit("/", 2)[0]
