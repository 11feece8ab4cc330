# obo_ingest/utils/ontology_utils.py
"""
Identifier helpers shared by the loader, the indexer and anything that needs
to turn a short `PREFIX:LOCAL` id into an OBO PURL and back again.
"""

import base64
import logging
import re
from typing import Dict, Iterable, Optional, Tuple

from obo_ingest.config import LEGACY_PREFIX_MAP, OBO_NS_STR

logger = logging.getLogger(__name__)

# Characters that may not appear in an IRI written between <...>
IRI_INVALID_RE = re.compile(r'[ <>"{}|\\^`]')

# First "PREFIX:LOCAL" token at the start of a field value (is_a, relationship, ...)
ID_TOKEN_RE = re.compile(r'^([A-Za-z0-9_.-]+:[A-Za-z0-9_.-]+)')

# Fragments usable verbatim as a search-index primary key. '-' is excluded so
# that they can never collide with an encoded key (which always has one).
PLAIN_KEY_RE = re.compile(r'^[A-Za-z0-9_]+$')
ENCODED_KEY_PREFIX = "u-"


def strip_surrounding_quotes(value: str) -> str:
    """Removes one pair of enclosing double quotes, if present."""
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1]
    return value


def extract_id_token(text: str) -> Optional[str]:
    """Returns the leading PREFIX:LOCAL token of `text`, or None."""
    m = ID_TOKEN_RE.match(text.strip())
    return m.group(1) if m else None


class IdentifierNormalizer:
    """
    Converts `PREFIX:LOCAL` identifiers to full URIs and back.

    A single bidirectional prefix table is used for both directions, e.g.
    with {"ncbi": "NCBITaxon"}:

        normalize("ncbi:9606")  -> ("http://purl.obolibrary.org/obo/NCBITaxon_9606", True)
        shorten(".../NCBITaxon_9606") -> "ncbi:9606"

    `shorten` splits the fragment at its first '_', so a prefix that itself
    contains '_' does not round-trip: "NCBI_GC:1" comes back as "NCBI:GC_1".
    The URI is still correct; only the display form differs.
    """

    def __init__(self, base_namespace: str = OBO_NS_STR,
                 legacy_prefixes: Optional[Iterable[Tuple[str, str]]] = None):
        if legacy_prefixes is None:
            legacy_prefixes = LEGACY_PREFIX_MAP.items()
        self.base_namespace = base_namespace
        self.forward: Dict[str, str] = dict(legacy_prefixes)
        self.inverse = {canonical: legacy for legacy, canonical in self.forward.items()}
        if len(self.inverse) != len(self.forward):
            raise ValueError(f"Legacy prefix map is not one-to-one: {self.forward}")

    def normalize(self, raw: str) -> Tuple[str, bool]:
        """
        Validates `raw` and returns (uri, ok).

        Trailing qualifier syntax (`EXACT []`, `{...}`) is cut at the first
        space or '['. Values starting with 'http' are returned as-is.
        """
        value = strip_surrounding_quotes(raw)
        for stop in (" ", "["):
            idx = value.find(stop)
            if idx != -1:
                value = value[:idx]
        value = value.strip()

        if not value or ":" not in value or IRI_INVALID_RE.search(value):
            return "", False
        if value.startswith("http"):
            return value, True

        prefix, local = value.split(":", 1)
        if "_" in prefix:
            logger.debug(f"Prefix '{prefix}' contains '_'; its short form will not round-trip: {value}")
        prefix = self.forward.get(prefix, prefix)
        return f"{self.base_namespace}{prefix}_{local}", True

    def fragment(self, uri: str) -> str:
        """Local part: '.../obo/PATO_0000014' -> 'PATO_0000014'."""
        if uri.startswith(self.base_namespace):
            return uri[len(self.base_namespace):]
        return uri.rstrip("/").rsplit("/", 1)[-1].rsplit("#", 1)[-1]

    def document_key(self, uri: str) -> str:
        """
        Search-index primary key for `uri`, limited to [A-Za-z0-9_-].

        OBO PURLs with a plain fragment keep it ('PATO_0000014'); any other
        URI is base64url-encoded whole behind 'u-', so distinct URIs always
        get distinct keys. `key_to_uri` reverses it.
        """
        if uri.startswith(self.base_namespace):
            fragment = uri[len(self.base_namespace):]
            if PLAIN_KEY_RE.match(fragment):
                return fragment
        encoded = base64.urlsafe_b64encode(uri.encode("utf-8")).decode("ascii").rstrip("=")
        return ENCODED_KEY_PREFIX + encoded

    def key_to_uri(self, key: str) -> str:
        if key.startswith(ENCODED_KEY_PREFIX):
            encoded = key[len(ENCODED_KEY_PREFIX):]
            padding = "=" * (-len(encoded) % 4)
            return base64.urlsafe_b64decode(encoded + padding).decode("utf-8")
        return self.base_namespace + key

    def shorten(self, uri: str) -> str:
        """
        Inverse of `normalize` for display: '.../obo/NCBITaxon_9606' -> 'ncbi:9606'.

        URIs outside the base namespace are returned unchanged.
        """
        uri = str(uri)
        if not uri.startswith(self.base_namespace):
            return uri
        fragment = uri[len(self.base_namespace):]
        if "_" not in fragment:
            return fragment
        prefix, local = fragment.split("_", 1)
        prefix = self.inverse.get(prefix, prefix)
        return f"{prefix}:{local}"

    def ontology_tag(self, uri: str) -> str:
        """Canonical prefix of a normalized URI ('PATO', 'NCBITaxon', ...)."""
        return self.fragment(uri).split("_", 1)[0]
