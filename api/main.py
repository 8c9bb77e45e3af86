"""
FastAPI application entrypoint.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api import routes

logging.basicConfig(level=getattr(logging, routes.settings.LOG_LEVEL.upper(), logging.INFO))


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Models load in the background, like a page mount; readiness gates the ticks
    loading = asyncio.create_task(routes.runtime.load_models())
    yield
    loading.cancel()
    await asyncio.gather(loading, return_exceptions=True)
    await routes.runtime.shutdown()


app = FastAPI(title="Mood Detector", version="1.0.0", lifespan=lifespan)
app.include_router(routes.router)

@app.get("/health")
def health() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Simple status payload.
    """
    return {"status": "ok"}
