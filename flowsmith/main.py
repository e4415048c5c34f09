"""
Flowsmith Main Application

FastAPI application entry point for the workflow compiler service.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from . import __version__
from .api.routes import router
from .config import get_config


# Configure logging
logging.basicConfig(
    level=getattr(logging, get_config().log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Create FastAPI app
app = FastAPI(
    title="Flowsmith Workflow Compiler",
    description="""
## Flowsmith - Workflow Compiler Service

Turns visual automations (graphs of typed nodes and edges) into
self-contained Python request handlers.

### Pipeline
1. **Graph analysis** - entry trigger, loops, depth, disconnected nodes
2. **Code generation** - one deterministic `WorkflowHandler` module
3. **Bundling** - handler plus runtime support code in a single script

### Endpoints
- `POST /api/v1/compile` - Compile a workflow graph
- `POST /api/v1/validate` - Validate without returning code
- `POST /api/v1/bundle` - Compile and bundle for deployment
- `GET /api/v1/nodes` - Known node kinds
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    debug=get_config().debug,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include router
app.include_router(router)


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "name": "Flowsmith Workflow Compiler",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/v1/health",
    }
