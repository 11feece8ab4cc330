"""Load OBO ontologies into a SPARQL graph store and a full-text search index."""

__version__ = "0.1.0"
