# obo_ingest/ingestion/tokenizer.py
"""
Line tokenizer for OBO flat files.

OBO uses '!' for trailing comments, but '!' is also legal inside quoted
values (synonyms, definitions), so only a '!' outside double quotes starts a
comment.
"""

import gzip
from pathlib import Path
from typing import IO, Iterable, Iterator

COMMENT_CHAR = "!"
QUOTE_CHAR = '"'
ESCAPE_CHAR = "\\"


def strip_comment(line: str) -> str:
    """
    Returns `line` with any unquoted '!' comment removed, trimmed.

    An unterminated quote keeps the rest of the line "inside quotes", which
    disables comment stripping for that line.
    """
    in_quote = False
    escaped = False
    for i, ch in enumerate(line):
        if escaped:
            escaped = False
            continue
        if ch == ESCAPE_CHAR:
            escaped = True
            continue
        if ch == QUOTE_CHAR:
            in_quote = not in_quote
            continue
        if ch == COMMENT_CHAR and not in_quote:
            return line[:i].strip()
    return line.strip()


def iter_logical_lines(lines: Iterable[str]) -> Iterator[str]:
    """Yields non-empty lines after comment stripping."""
    for line in lines:
        cleaned = strip_comment(line)
        if cleaned:
            yield cleaned


def open_ontology_file(path: Path) -> IO[str]:
    """Opens an OBO file for reading as UTF-8 text (gzip aware)."""
    if not path.exists():
        raise FileNotFoundError(f"Ontology file not found: {path}")
    if str(path).endswith('.gz'):
        return gzip.open(path, 'rt', encoding='utf-8')
    return path.open('r', encoding='utf-8')
