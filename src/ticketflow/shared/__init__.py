"""
Shared Kernel Module
====================

Generic infrastructure shared by the ingestion, triage and pipeline
bounded contexts. Business rules stay inside their own context.
"""

__version__ = "1.0.0"
