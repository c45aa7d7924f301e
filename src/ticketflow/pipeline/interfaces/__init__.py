"""
Pipeline Interfaces Layer
==========================

FastAPI routes for the pipeline stages.
"""

from ticketflow.pipeline.interfaces.controllers import pipeline_router

__all__ = ["pipeline_router"]
