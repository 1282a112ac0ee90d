"""Feature modules for :mod:`dsindex` (embeddings, records, search)."""
