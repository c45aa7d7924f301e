"""
Ticketflow - Main Application
=============================

Customer-support triage pipeline.

Modules:
- Ingestion: Crawl documentation, chunk it and queue chunk embeddings
- Pipeline: Drain the embedding and classification queues
- Triage: Classify tickets, retrieve references and draft responses

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, job queue, LLM clients, crawler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Configuration and Core
from ticketflow.config import Settings, settings
from ticketflow.core import ApplicationException

# Infrastructure
from ticketflow.infrastructure.database import (
    close_database,
    create_tables,
    get_session_factory,
    init_database,
)
from ticketflow.infrastructure.llm import (
    EmbeddingClient,
    EmbeddingClientConfig,
    IEmbeddingClient,
    ITextGenerator,
    TextGenerationConfig,
    build_text_generator,
)
from ticketflow.infrastructure.queue import IJobQueue, SQLAlchemyJobQueue

# Ingestion
from ticketflow.ingestion.application import DocumentProcessor, ICrawler, IngestionService
from ticketflow.ingestion.domain import CrawlPolicy, DocumentChunker
from ticketflow.ingestion.infrastructure import CrawlerConfig, DocsCrawler, document_repository_scope

# Pipeline
from ticketflow.pipeline.application import (
    ClassificationJobHandler,
    EmbeddingJobHandler,
    PipelineOrchestrator,
    PipelineService,
    StageSettings,
)
from ticketflow.pipeline.domain import FailurePolicy
from ticketflow.pipeline.infrastructure import PipelineScheduler, SQLAlchemyEmbeddingTargetRepository
from ticketflow.pipeline.interfaces import pipeline_router

# Triage
from ticketflow.triage.application import ClassificationService, ReferenceSeeder, ResponseSynthesizer
from ticketflow.triage.domain import ClassifierThresholds, SemanticClassifier
from ticketflow.triage.infrastructure import triage_repository_scope

# Logging and API plumbing
from ticketflow.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from ticketflow.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_pipeline_service(
    session_factory: async_sessionmaker[AsyncSession],
    config: Settings,
    queue: Optional[IJobQueue] = None,
    embedder: Optional[IEmbeddingClient] = None,
    generator: Optional[ITextGenerator] = None,
    crawler: Optional[ICrawler] = None,
) -> PipelineService:
    """
    Wire every stage onto one session factory.

    Any collaborator left as None is built from config; tests pass fakes
    for the network-facing ones.
    """
    queue = queue or SQLAlchemyJobQueue(session_factory)
    embedder = embedder or EmbeddingClient(EmbeddingClientConfig.from_settings(config))
    if generator is None:
        generator = build_text_generator(TextGenerationConfig.from_settings(config))
    crawler = crawler or DocsCrawler(CrawlerConfig.from_settings(config), CrawlPolicy())

    stages = StageSettings.from_settings(config)
    triage_scope = triage_repository_scope(session_factory)
    targets = SQLAlchemyEmbeddingTargetRepository(session_factory)

    processor = DocumentProcessor(
        document_repository_scope(session_factory),
        queue,
        DocumentChunker(config.chunk_size, config.chunk_overlap),
        embedding_queue=stages.embedding_queue,
    )
    classification_service = ClassificationService(
        triage_scope,
        embedder,
        SemanticClassifier(ClassifierThresholds.from_settings(config)),
        ResponseSynthesizer(generator),
    )

    return PipelineService(
        orchestrator=PipelineOrchestrator(queue, FailurePolicy(max_deliveries=config.max_deliveries)),
        queue=queue,
        targets=targets,
        embedding_handler=EmbeddingJobHandler(
            targets, embedder, queue, classification_queue=stages.classification_queue
        ),
        classification_handler=ClassificationJobHandler(classification_service),
        ingestion=IngestionService(crawler, processor),
        seeder=ReferenceSeeder(embedder, triage_scope),
        stages=stages,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables
    4. Build clients and the pipeline service
    5. Start the scheduler when enabled

    SHUTDOWN:
    1. Stop the scheduler
    2. Close HTTP clients
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment, settings.app_name)
    logger.info("Starting Ticketflow", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()

    # Development convenience; deployments manage the schema separately
    if settings.environment in ("development", "test"):
        logger.info("Creating database tables")
        await create_tables()

    embedder = EmbeddingClient(EmbeddingClientConfig.from_settings(settings))
    crawler = DocsCrawler(CrawlerConfig.from_settings(settings), CrawlPolicy())
    generator = build_text_generator(TextGenerationConfig.from_settings(settings))

    pipeline_service = build_pipeline_service(
        get_session_factory(),
        settings,
        embedder=embedder,
        generator=generator,
        crawler=crawler,
    )

    scheduler = None
    if settings.pipeline_schedule_enabled:
        scheduler = PipelineScheduler(interval_seconds=settings.pipeline_interval_seconds)
        await scheduler.start(pipeline_service.drain)

    # Store services in app state for dependency injection
    app.state.settings = settings
    app.state.pipeline_service = pipeline_service
    app.state.scheduler = scheduler
    app.state.text_generator = generator

    logger.info("Ticketflow started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Ticketflow")

    if scheduler:
        await scheduler.stop()

    await crawler.close()
    await embedder.close()
    if generator is not None:
        await generator.close()
    await close_database()

    logger.info("Ticketflow shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Ticketflow API",
    description="""
    ## Customer Support Triage Pipeline

    Crawls product documentation, embeds tickets and documentation chunks,
    classifies tickets against reference labels and drafts responses.

    ---

    ### Pipeline stages

    - `POST /pipeline/crawl` - Crawl documentation and queue chunk embeddings
    - `POST /pipeline/embeddings` - Process one batch of embedding jobs
    - `POST /pipeline/classification` - Process one batch of classification jobs
    - `POST /pipeline/references/seed` - Embed reference labels
    - `POST /pipeline/tickets/{ticket_id}/enqueue` - Queue a new ticket

    Batch endpoints report per-message failures in the response body.
    Failed jobs are retried after their visibility timeout unless the
    failure is permanent or the job has been delivered too many times.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(pipeline_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "pipeline": "ready",
                        "scheduler": "stopped",
                        "text_generator": "not_configured"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """Health check endpoint for load balancers and serverless probes."""
    scheduler = getattr(request.app.state, "scheduler", None)
    checks = {
        "pipeline": "ready" if getattr(request.app.state, "pipeline_service", None) else "initializing",
        "scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "text_generator": "available" if getattr(request.app.state, "text_generator", None) else "not_configured",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
    }


def run() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "ticketflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
