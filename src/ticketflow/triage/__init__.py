"""
Triage Module
=============

Bounded context for semantic ticket classification, similar-ticket and
documentation retrieval, and AI response drafting.
"""
