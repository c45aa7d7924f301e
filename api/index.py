"""
Serverless entry point for the Ticketflow API
"""
import os

# Scheduled ticks come from the platform's cron, not an in-process scheduler
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("PIPELINE_SCHEDULE_ENABLED", "false")

from mangum import Mangum

from ticketflow.main import app

# ASGI handler; lifespan runs so app.state is populated on cold start
handler = Mangum(app, lifespan="auto")
