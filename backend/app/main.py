"""
Candidate Vetting Engine - FastAPI Application

Main entry point for the candidate vetting backend.

Architecture:
- Survey response → VettingCase (sections seeded)
- Stage advance → Gate → compare-and-set → audit bootstrap
- Audit bootstrap → AuditTaskRegistry → DigitalPresenceAuditEngine
- Committee review → Recommendation → Board vote → Endorsement result
"""
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import committee_router, vetting_router
from .database import init_db
from .services.audit.runner import shutdown_audit_registry

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup; stop the audit worker pool on shutdown."""
    init_db()
    yield
    shutdown_audit_registry()

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Candidate Vetting Engine",
    description="""
    Candidate Vetting Engine - Endorsement Review Pipeline

    Moves candidates through a staged endorsement review and runs a
    background digital presence audit when a case enters auto_audit.

    ## Pipeline
    survey_submitted → auto_audit → assigned → research → interview →
    committee_review → board_vote → press_release_created → press_release_published

    ## Key Principles
    - Stages only move forward; every boundary crossed must pass its gate
    - Stage writes are compare-and-set on the stage that was read
    - At most one pending/running audit per vetting
    - Audit failures always end in a terminal status or an operator log line
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers (committee first: its static paths sit under the vetting prefix)
app.include_router(committee_router)
app.include_router(vetting_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Candidate Vetting Engine",
        "version": "1.0.0",
        "description": "Endorsement review pipeline",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
