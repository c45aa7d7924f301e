"""
Ingestion Module
================

Bounded context that turns product documentation into stored, chunked
documents ready for embedding.
"""
