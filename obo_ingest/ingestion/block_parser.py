# obo_ingest/ingestion/block_parser.py
import logging
import re
from enum import Enum
from typing import Iterable, Iterator, Optional, Sequence

from obo_ingest.ingestion.records import DEFAULT_GRAMMAR, FieldGrammar, Record, RecordBuilder
from obo_ingest.ingestion.tokenizer import iter_logical_lines
from obo_ingest.utils.ontology_utils import IdentifierNormalizer

logger = logging.getLogger(__name__)

BLOCK_HEADER_RE = re.compile(r'^\[([^\[\]]*)\]$')


class BlockState(Enum):
    OUTSIDE_BLOCK = "outside"
    IN_ACCEPTED_BLOCK = "accepted"
    IN_IGNORED_BLOCK = "ignored"


class BlockParser:
    """
    Stanza state machine over tokenized lines.

    `feed` returns the record finalized by a block header (if any); `close`
    returns the record still open at end of input. Lines outside accepted
    blocks, including the file header stanza, are discarded.
    """

    def __init__(self, accepted_kinds: Sequence[str], normalizer: IdentifierNormalizer,
                 grammar: FieldGrammar = DEFAULT_GRAMMAR):
        self.accepted_kinds = frozenset(accepted_kinds)
        self.normalizer = normalizer
        self.grammar = grammar
        self.state = BlockState.OUTSIDE_BLOCK
        self._builder: Optional[RecordBuilder] = None
        self.blocks_seen = 0
        self.inert_blocks = 0

    def feed(self, line: str) -> Optional[Record]:
        header = BLOCK_HEADER_RE.match(line)
        if header is None:
            if self.state is BlockState.IN_ACCEPTED_BLOCK:
                self._builder.feed(line)
            return None

        finished = self._finalize()
        kind = header.group(1).strip()
        if kind in self.accepted_kinds:
            self._builder = RecordBuilder(kind, self.normalizer, self.grammar)
            self.state = BlockState.IN_ACCEPTED_BLOCK
            self.blocks_seen += 1
        else:
            self.state = BlockState.IN_IGNORED_BLOCK
        return finished

    def close(self) -> Optional[Record]:
        finished = self._finalize()
        self.state = BlockState.OUTSIDE_BLOCK
        return finished

    def _finalize(self) -> Optional[Record]:
        if self._builder is None:
            return None
        record = self._builder.finalize()
        if record is None:
            self.inert_blocks += 1
        self._builder = None
        return record


def parse_records(lines: Iterable[str], accepted_kinds: Sequence[str],
                  normalizer: IdentifierNormalizer,
                  grammar: FieldGrammar = DEFAULT_GRAMMAR) -> Iterator[Record]:
    """Yields every record with a valid id, in file order (duplicates included)."""
    parser = BlockParser(accepted_kinds, normalizer, grammar)
    for line in iter_logical_lines(lines):
        record = parser.feed(line)
        if record is not None:
            yield record
    record = parser.close()
    if record is not None:
        yield record
