# obo_ingest/sinks/whoosh_index.py
"""
Local Whoosh search-index sink.

Each destination is a directory under `index_root`. The `id` field is
unique, so `update_document` replaces an existing document with the same id.
"""

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Sequence

from whoosh import index as whoosh_index
from whoosh.analysis import StemmingAnalyzer
from whoosh.fields import ID, TEXT, Schema
from whoosh.index import LockError
from whoosh.writing import IndexingError

from obo_ingest.sinks.base import Sink, SinkError

logger = logging.getLogger(__name__)


def build_schema() -> Schema:
    analyzer = StemmingAnalyzer()
    return Schema(
        id=ID(stored=True, unique=True),
        curie=ID(stored=True),
        uri=ID(stored=True),
        label=TEXT(stored=True, analyzer=analyzer),
        en=TEXT(stored=False, analyzer=analyzer),
        ja=TEXT(stored=True),
        synonyms=TEXT(stored=True, analyzer=analyzer),
        ontology=ID(stored=True),
    )


class WhooshIndexSink(Sink):
    name = "whoosh"

    def __init__(self, index_root: Path):
        self.index_root = Path(index_root)
        logger.info(f"WhooshIndexSink writing under: {self.index_root}")

    def index_dir(self, destination: str) -> Path:
        return self.index_root / destination

    def _open(self, destination: str):
        index_dir = self.index_dir(destination)
        if whoosh_index.exists_in(str(index_dir)):
            return whoosh_index.open_dir(str(index_dir))
        index_dir.mkdir(parents=True, exist_ok=True)
        return whoosh_index.create_in(str(index_dir), build_schema())

    def clear(self, destination: str) -> None:
        # Rebuild from scratch to avoid stale locks/temp files from interrupted runs
        index_dir = self.index_dir(destination)
        try:
            if index_dir.exists():
                shutil.rmtree(index_dir)
            index_dir.mkdir(parents=True, exist_ok=True)
            whoosh_index.create_in(str(index_dir), build_schema())
        except OSError as e:
            raise SinkError(f"Could not reset Whoosh index {index_dir}: {e}") from e

    def write_batch(self, destination: str, items: Sequence[Dict[str, Any]]) -> None:
        if not items:
            return
        try:
            ix = self._open(destination)
        except OSError as e:
            raise SinkError(f"Could not open Whoosh index for '{destination}': {e}") from e
        try:
            writer = ix.writer()
        except (LockError, OSError) as e:
            ix.close()
            raise SinkError(f"Could not lock Whoosh index for '{destination}': {e}") from e

        try:
            for doc in items:
                fields = {
                    "curie": doc.get("curie"),
                    "uri": doc.get("uri"),
                    "label": doc.get("label"),
                    "en": doc.get("en"),
                    "ja": doc.get("ja"),
                    "synonyms": " ; ".join(doc.get("synonyms", [])),
                    "ontology": doc.get("ontology"),
                }
                # Empty values are left out rather than indexed as empty terms
                fields = {k: v for k, v in fields.items() if v}
                writer.update_document(id=doc["id"], **fields)
            writer.commit()
        except (IndexingError, OSError, KeyError) as e:
            writer.cancel()
            raise SinkError(f"Whoosh indexing failed for '{destination}': {e}") from e
        finally:
            ix.close()
