"""Pipeline components.

This package contains the corpus reader, schema inference, the exact-match
tokenizer, the DuckDB-backed index store with its phrase queries, the ingestion
pipeline and the reference corpus clone helper.
"""
