"""FastAPI application exposing the flowcore engine."""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowcore.config import configure_logging
from server import db
from server.agent_routes import router as agent_router
from server.record_routes import router as record_router
from server.run_routes import router as run_router
from server.workflow_routes import router as workflow_router

load_dotenv()  # load environment variables from .env file

# CORS origins - configurable via environment variable
# Use comma-separated values for multiple origins, or "*" for all (development only)
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize logging and database tables on startup."""
    configure_logging()
    db.init_all()
    yield


app = FastAPI(
    title="Flowcore API",
    description="API server for workflow graphs, execution contexts and run records",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# include routes
app.include_router(workflow_router, prefix="/api")
app.include_router(record_router, prefix="/api")
app.include_router(agent_router, prefix="/api")
app.include_router(run_router, prefix="/api")


@app.get("/")
def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "0.1.0",
        "db": str(db.DB_PATH),
        "endpoints": {
            "workflows": "/api/workflows",
            "records": "/api/records/{kind}",
            "agent_definitions": "/api/agent-definitions",
            "runs": "/api/runs",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
