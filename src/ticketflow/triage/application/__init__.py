"""
Triage Application Layer
=========================

Services, repository interfaces and DTOs for ticket triage.
"""

from ticketflow.triage.application.dto import (
    ReferenceLabelSpec,
    SeedFailure,
    SeedSummary,
    TriageOutcome,
)
from ticketflow.triage.application.services import (
    ClassificationService,
    IAIResponseRepository,
    IDocumentIndex,
    IReferenceRepository,
    ITicketRepository,
    ReferenceSeeder,
    ResponseSynthesizer,
    TriageRepositories,
    extract_json_object,
    load_reference_labels,
)

__all__ = [
    # DTOs
    "ReferenceLabelSpec",
    "SeedFailure",
    "SeedSummary",
    "TriageOutcome",
    # Services
    "ClassificationService",
    "ReferenceSeeder",
    "ResponseSynthesizer",
    "extract_json_object",
    "load_reference_labels",
    # Repository Interfaces
    "IAIResponseRepository",
    "IDocumentIndex",
    "IReferenceRepository",
    "ITicketRepository",
    "TriageRepositories",
]
