"""FastAPI application wiring for the Messenger reply bot.

- Loads ``.env`` and configures application/access logging.
- Mounts the Messenger webhook router (handshake + event delivery).
- Exposes Prometheus metrics, a health probe and version information.
"""

from dotenv import load_dotenv
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .routers import webhooks

load_dotenv()

app = FastAPI(title="Messenger Reply Bot", version=__version__)
init_logging(app)
app.include_router(webhooks.router)

# Expose Prometheus metrics
Instrumentator().instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)


@app.get("/api/health")
async def health():
    """Liveness/readiness probe with a minimal JSON body."""
    return {"status": "ok"}


@app.get("/api/version")
async def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }
